"""Domain models representing core business entities."""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Convert GitHub's ISO timestamp string to an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way GitHub does (UTC, trailing Z)."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class RawRepo:
    """Immutable repository record as received from GitHub.

    Produced only by the ingestion layer, which converts both REST and
    GraphQL payloads into this one shape. ``source`` tags where it came from.
    """
    id: int
    name: str
    full_name: str
    owner_login: str
    owner_type: str
    html_url: str
    description: Optional[str]
    fork: bool
    archived: bool
    created_at: datetime
    updated_at: datetime
    pushed_at: datetime
    stargazers_count: int = 0
    watchers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    language: Optional[str] = None
    topics: Tuple[str, ...] = ()
    license_key: Optional[str] = None
    size_kb: Optional[int] = None
    source: str = "rest"

    @property
    def text_blob(self) -> str:
        """Lowercased name, description and topics used for keyword matching."""
        return " ".join(
            [self.name, self.description or "", " ".join(self.topics)]
        ).lower()


@dataclass(frozen=True)
class RawUser:
    """Immutable user profile as received from GitHub."""
    id: int
    login: str
    type: str = "User"
    name: Optional[str] = None
    avatar_url: str = ""
    html_url: str = ""
    bio: Optional[str] = None
    location: Optional[str] = None
    blog: Optional[str] = None
    twitter_username: Optional[str] = None
    company: Optional[str] = None
    public_repos: int = 0
    followers: int = 0
    following: int = 0
    source: str = "rest"


@dataclass(frozen=True)
class RateBudget:
    """Snapshot of the remaining API quota.

    Every client call receives the current budget and returns the next one,
    so the orchestrator always knows how much quota it has left.
    """
    remaining: int = 5000
    limit: int = 5000
    reset_at: Optional[datetime] = None

    def is_below(self, buffer: int) -> bool:
        return self.remaining < buffer

    def seconds_until_reset(self, now: datetime) -> float:
        if self.reset_at is None:
            return 0.0
        return max(0.0, (self.reset_at - now).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_at": format_timestamp(self.reset_at) if self.reset_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateBudget":
        return cls(
            remaining=int(data.get("remaining", 5000)),
            limit=int(data.get("limit", 5000)),
            reset_at=parse_timestamp(data.get("reset_at")),
        )


@dataclass(frozen=True)
class QualitySignals:
    """Boolean quality proxies. None of these are verified facts."""
    has_readme: bool = False
    has_tests: bool = False
    has_ci: bool = False
    has_license: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QualitySignals":
        return cls(
            has_readme=bool(data.get("has_readme", False)),
            has_tests=bool(data.get("has_tests", False)),
            has_ci=bool(data.get("has_ci", False)),
            has_license=bool(data.get("has_license", False)),
        )


@dataclass(frozen=True)
class RepoEvaluation:
    """Result of a successful repository evaluation."""
    product_score: int
    execution_score: int
    final_score: int
    categories: Tuple[str, ...]
    blockchains: Tuple[str, ...]
    frameworks: Tuple[str, ...]
    language: Optional[str]
    quality: QualitySignals
    repo_age_days: int
    days_since_last_commit: int
    star_velocity: float
    is_hot: bool
    is_active: bool
    is_early_stage: bool
    is_underrated: bool
    coin_worthy: bool


@dataclass(frozen=True)
class BuilderEvaluation:
    """Result of a builder evaluation, accepted or not."""
    accepted: bool
    score: int
    reason: Optional[str] = None


@dataclass
class RepoRecord:
    """Persisted repository. Never modified once stored."""
    id: int
    builder: str
    name: str
    full_name: str
    description: str
    url: str
    stars: int
    forks: int
    watchers: int
    open_issues: int
    language: Optional[str]
    topics: List[str]
    created_at: str
    last_commit_at: str
    categories: List[str]
    quality: QualitySignals
    product_score: int
    execution_score: int
    final_score: int
    coin_worthy: bool
    blockchains: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)
    repo_age_days: int = 0
    days_since_last_commit: int = 0
    star_velocity: float = 0.0
    is_hot: bool = False
    is_active: bool = False
    is_early_stage: bool = False
    is_underrated: bool = False
    first_scored_at: Optional[str] = None
    activity: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_evaluation(
        cls, repo: RawRepo, evaluation: RepoEvaluation, builder: str, scored_at: datetime
    ) -> "RepoRecord":
        """Build the stored record for a repository that passed evaluation."""
        last_commit_at = format_timestamp(repo.pushed_at)
        return cls(
            id=repo.id,
            builder=builder,
            name=repo.name,
            full_name=repo.full_name,
            description=repo.description or "",
            url=repo.html_url,
            stars=repo.stargazers_count,
            forks=repo.forks_count,
            watchers=repo.watchers_count,
            open_issues=repo.open_issues_count,
            language=evaluation.language,
            topics=list(repo.topics),
            created_at=format_timestamp(repo.created_at),
            last_commit_at=last_commit_at,
            categories=list(evaluation.categories),
            quality=evaluation.quality,
            product_score=evaluation.product_score,
            execution_score=evaluation.execution_score,
            final_score=evaluation.final_score,
            coin_worthy=evaluation.coin_worthy,
            blockchains=list(evaluation.blockchains),
            frameworks=list(evaluation.frameworks),
            repo_age_days=evaluation.repo_age_days,
            days_since_last_commit=evaluation.days_since_last_commit,
            star_velocity=evaluation.star_velocity,
            is_hot=evaluation.is_hot,
            is_active=evaluation.is_active,
            is_early_stage=evaluation.is_early_stage,
            is_underrated=evaluation.is_underrated,
            first_scored_at=format_timestamp(scored_at),
            # Commit history is not analysed; these are placeholders.
            activity={
                "total_commits": 0,
                "weeks_active": 0,
                "avg_commits_per_week": 0,
                "last_commit_date": last_commit_at,
                "consistency_score": 50,
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepoRecord":
        values = dict(data)
        values["quality"] = QualitySignals.from_dict(values.get("quality") or {})
        return cls(**values)


@dataclass
class BuilderRecord:
    """Persisted builder profile with its accepted repositories."""
    id: int
    username: str
    name: Optional[str]
    avatar: str
    profile_url: str
    bio: Optional[str]
    location: Optional[str]
    website: Optional[str]
    twitter: Optional[str]
    total_repos: int
    quality_repos: List[int]
    focus_areas: List[str]
    followers: int
    public_repos: int
    reputation_score: int
    consistency_score: int
    first_seen_at: str
    last_active_at: str
    last_scanned_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuilderRecord":
        return cls(**data)


@dataclass
class ScanState:
    """Crawl bookkeeping persisted next to the records."""
    last_scan_at: Optional[str] = None
    cycles: int = 0
    users_processed: int = 0
    builders_accepted: int = 0
    repos_accepted: int = 0
    scanned_users: Dict[str, str] = field(default_factory=dict)
    rate_limit: RateBudget = field(default_factory=RateBudget)

    def last_scanned(self, username: str) -> Optional[datetime]:
        return parse_timestamp(self.scanned_users.get(username))

    def mark_scanned(self, username: str, when: datetime) -> None:
        self.scanned_users[username] = format_timestamp(when)
        self.last_scan_at = format_timestamp(when)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["rate_limit"] = self.rate_limit.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanState":
        values = dict(data)
        values["rate_limit"] = RateBudget.from_dict(values.get("rate_limit") or {})
        values["scanned_users"] = dict(values.get("scanned_users") or {})
        return cls(**values)


@dataclass
class Store:
    """Everything the scanner has accumulated, persisted as one snapshot."""
    builders: Dict[str, BuilderRecord] = field(default_factory=dict)
    repos: Dict[int, RepoRecord] = field(default_factory=dict)
    scan_state: ScanState = field(default_factory=ScanState)
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "builders": {name: b.to_dict() for name, b in self.builders.items()},
            # JSON object keys are strings
            "repos": {str(repo_id): r.to_dict() for repo_id, r in self.repos.items()},
            "scan_state": self.scan_state.to_dict(),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Store":
        if not isinstance(data, dict):
            raise ValueError("Store snapshot must be a JSON object")
        return cls(
            builders={
                name: BuilderRecord.from_dict(b)
                for name, b in (data.get("builders") or {}).items()
            },
            repos={
                int(repo_id): RepoRecord.from_dict(r)
                for repo_id, r in (data.get("repos") or {}).items()
            },
            scan_state=ScanState.from_dict(data.get("scan_state") or {}),
            last_updated=data.get("last_updated"),
        )


@dataclass(frozen=True)
class CycleMetrics:
    """Metrics for one scan cycle."""
    strategy: str
    candidates: int
    users_processed: int
    builders_accepted: int
    repos_accepted: int
    duration_seconds: float
    rate_limit_waits: int = 0
    errors: int = 0


@dataclass(frozen=True)
class ScanSummary:
    """Totals for a whole scanner run."""
    cycles: int
    users_processed: int
    builders_accepted: int
    repos_accepted: int
    errors_encountered: int
    budget: RateBudget
    empty_topics: int = 0
