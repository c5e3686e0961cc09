"""Repository and builder evaluation.

Pure functions: every input, including the current time, is passed in, so the
same record evaluated against the same policy at the same instant always
produces the same decision.
"""
import re
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from builder_scout.domain.models import (
    BuilderEvaluation,
    QualitySignals,
    RawRepo,
    RawUser,
    RepoEvaluation,
)
from builder_scout.domain.policy import DEFAULT_POLICY, ScoringPolicy

SECONDS_PER_DAY = 60 * 60 * 24


@lru_cache(maxsize=None)
def _word_pattern(keyword: str) -> "re.Pattern[str]":
    # Whole-word match with an optional plural "s": "nft" matches "nfts" but
    # "sol" does not match "solution".
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + r"s?(?![a-z0-9])")


@lru_cache(maxsize=None)
def _prefix_pattern(pattern: str) -> "re.Pattern[str]":
    return re.compile(r"(?<![a-z0-9])" + re.escape(pattern))


def mentions(text: str, keyword: str) -> bool:
    """Check whether ``keyword`` appears in ``text`` as a whole word."""
    return _word_pattern(keyword).search(text) is not None


def mentions_any(text: str, keywords: Iterable[str]) -> bool:
    return any(mentions(text, keyword) for keyword in keywords)


def days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


def star_velocity(stars: int, age_days: float) -> float:
    """Stars per day of repository age; 0 for repos with no measurable age."""
    if age_days <= 0:
        return 0.0
    return round(stars / age_days, 2)


def maintenance_score(days_since_push: float) -> int:
    if days_since_push < 30:
        return 100
    if days_since_push < 90:
        return 80
    if days_since_push < 180:
        return 60
    if days_since_push < 365:
        return 40
    return 20


def is_underrated(
    final_score: int, stars: int, has_tests: bool, policy: ScoringPolicy = DEFAULT_POLICY
) -> bool:
    """High score, few stars and some sign of tests: a hidden gem."""
    return (
        final_score >= policy.underrated_min_score
        and stars < policy.underrated_max_stars
        and has_tests
    )


def detect_blockchains(text: str, policy: ScoringPolicy = DEFAULT_POLICY) -> List[str]:
    return [
        chain
        for chain, keywords in policy.blockchain_keywords.items()
        if mentions_any(text, keywords)
    ]


def detect_language(repo: RawRepo, policy: ScoringPolicy = DEFAULT_POLICY) -> Optional[str]:
    """Smart-contract languages override the language GitHub reports."""
    text = repo.text_blob
    for language, keywords in policy.contract_languages.items():
        if repo.language == language or mentions_any(text, keywords):
            return language
    return repo.language


def detect_frameworks(text: str, policy: ScoringPolicy = DEFAULT_POLICY) -> List[str]:
    return [name for name in policy.web3_frameworks if mentions(text, name)]


def detect_categories(
    text: str, blockchains: Sequence[str], policy: ScoringPolicy = DEFAULT_POLICY
) -> List[str]:
    categories = [
        category
        for category, keywords in policy.category_keywords.items()
        if mentions_any(text, keywords)
    ]
    # Anything on a chain is crypto, even if it never says so.
    if blockchains and "crypto" not in categories:
        categories.append("crypto")
    return categories


def detect_quality(repo: RawRepo, policy: ScoringPolicy = DEFAULT_POLICY) -> QualitySignals:
    text = repo.text_blob
    topics = [topic.lower() for topic in repo.topics]
    return QualitySignals(
        has_readme=repo.description is not None and len(repo.description) > 20,
        has_license=repo.license_key is not None,
        has_tests=(
            mentions_any(text, policy.test_keywords)
            or any("test" in topic for topic in topics)
        ),
        has_ci=any(topic in policy.ci_topics for topic in topics),
    )


def rejection_reason(
    repo: RawRepo, now: datetime, policy: ScoringPolicy = DEFAULT_POLICY
) -> Optional[str]:
    """Return why ``repo`` fails the hard gates, or None if it passes them.

    Gates run in order and the first failure wins.
    """
    text = repo.text_blob

    if repo.owner_type != "User":
        return "owned by an organization"
    if repo.fork:
        return "fork"
    if repo.archived:
        return "archived"
    for pattern in policy.junk_patterns:
        if _prefix_pattern(pattern).search(text):
            return f"junk pattern '{pattern}'"

    if days_between(repo.pushed_at, now) > policy.max_inactive_days:
        return f"inactive for more than {policy.max_inactive_days} days"

    if repo.size_kb is not None and repo.size_kb < policy.min_size_kb:
        return f"too small ({repo.size_kb} KB)"
    if (
        days_between(repo.created_at, now) > policy.unvalidated_after_days
        and repo.stargazers_count == 0
        and repo.forks_count == 0
    ):
        return "no community validation"

    if policy.require_category:
        blockchains = detect_blockchains(text, policy)
        if not detect_categories(text, blockchains, policy):
            return "no matching category"

    return None


def _product_score(
    repo: RawRepo,
    categories: Sequence[str],
    days_since_push: float,
    age_days: float,
    velocity: float,
    policy: ScoringPolicy,
) -> int:
    text = repo.text_blob
    score = 0

    keyword_hits = sum(1 for keyword in policy.product_keywords if mentions(text, keyword))
    score += min(keyword_hits * 10, 30)
    score += min(len(categories) * 10, 30)

    stars = repo.stargazers_count
    if stars >= 1:
        score += 10
    if stars >= 10:
        score += 5
    if stars >= 50:
        score += 5
    if repo.forks_count > 0:
        score += 5

    if days_since_push < 30:
        score += 15
    elif days_since_push < 90:
        score += 10

    if repo.description and len(repo.description) >= 40:
        score += 10
    if age_days < policy.early_stage_days and stars >= 5:
        score += 5
    if velocity > 1:
        score += 5

    return max(0, min(score, 100))


def _execution_score(repo: RawRepo, quality: QualitySignals, days_since_push: float) -> int:
    code_quality = 40 * quality.has_tests + 30 * quality.has_ci + 30 * quality.has_license
    documentation = (
        50 * quality.has_readme
        + 25 * bool(repo.description and len(repo.description) >= 40)
        + 25 * bool(repo.topics)
    )
    maintenance = maintenance_score(days_since_push)
    return round(0.4 * code_quality + 0.3 * documentation + 0.3 * maintenance)


def evaluate_repo(
    repo: RawRepo, now: datetime, policy: ScoringPolicy = DEFAULT_POLICY
) -> Optional[RepoEvaluation]:
    """Score a repository.

    Args:
        repo: Normalized repository record
        now: Instant of evaluation
        policy: Thresholds and vocabularies to apply

    Returns:
        RepoEvaluation when the repository is accepted, None otherwise
    """
    if rejection_reason(repo, now, policy) is not None:
        return None

    text = repo.text_blob
    age_days = days_between(repo.created_at, now)
    days_since_push = days_between(repo.pushed_at, now)
    velocity = star_velocity(repo.stargazers_count, age_days)

    blockchains = detect_blockchains(text, policy)
    categories = detect_categories(text, blockchains, policy)
    quality = detect_quality(repo, policy)

    product = _product_score(repo, categories, days_since_push, age_days, velocity, policy)
    execution = _execution_score(repo, quality, days_since_push)
    final = round(0.6 * product + 0.4 * execution)

    if product < policy.min_product_score or final < policy.min_final_score:
        return None

    coin_worthy = (
        final >= policy.coin_worthy_score
        and len(categories) > 0
        and repo.stargazers_count >= policy.coin_worthy_min_stars
        and quality.has_readme
    )

    return RepoEvaluation(
        product_score=product,
        execution_score=execution,
        final_score=final,
        categories=tuple(categories),
        blockchains=tuple(blockchains),
        frameworks=tuple(detect_frameworks(text, policy)),
        language=detect_language(repo, policy),
        quality=quality,
        repo_age_days=round(age_days),
        days_since_last_commit=round(days_since_push),
        star_velocity=velocity,
        is_hot=days_since_push < policy.hot_days,
        is_active=days_since_push < policy.active_days,
        is_early_stage=age_days < policy.early_stage_days,
        is_underrated=is_underrated(final, repo.stargazers_count, quality.has_tests, policy),
        coin_worthy=coin_worthy,
    )


def follower_band_reason(user: RawUser, policy: ScoringPolicy = DEFAULT_POLICY) -> Optional[str]:
    """Too few followers means unvalidated, too many means already famous."""
    if user.followers < policy.min_followers:
        return f"only {user.followers} followers"
    if user.followers > policy.max_followers:
        return f"{user.followers} followers, already well known"
    return None


def evaluate_builder(
    user: RawUser, quality_repo_ids: Sequence[int], policy: ScoringPolicy = DEFAULT_POLICY
) -> BuilderEvaluation:
    """Decide whether ``user`` is a builder worth listing and compute a reputation score."""
    if len(quality_repo_ids) < policy.min_quality_repos:
        return BuilderEvaluation(
            accepted=False,
            score=0,
            reason=f"{len(quality_repo_ids)} quality repos, need {policy.min_quality_repos}",
        )

    band_reason = follower_band_reason(user, policy)
    if band_reason:
        return BuilderEvaluation(accepted=False, score=0, reason=band_reason)

    score = min(len(quality_repo_ids) * 12, 48)
    score += min(user.followers / policy.max_followers, 1.0) * 25
    if user.bio:
        score += 5
    if user.blog:
        score += 5
    score += min(user.public_repos, 50) / 50 * 17

    return BuilderEvaluation(accepted=True, score=max(0, min(round(score), 100)))


_COIN_REASONS: Tuple[Tuple[str, str], ...] = (
    ("infra", "Core developer infrastructure"),
    ("defi", "Touches real financial flows"),
    ("crypto", "Crypto-native architecture"),
    ("ai", "AI-powered product logic"),
    ("privacy", "Privacy-preserving product"),
)


def coin_reasons(categories: Sequence[str]) -> List[str]:
    """Short pitch lines for a coin-worthy repository, at most four."""
    reasons = [text for category, text in _COIN_REASONS if category in categories]
    reasons.append("Built by an independent builder")
    return reasons[:4]


def coin_thesis(name: str, categories: Sequence[str]) -> Dict[str, str]:
    primary = categories[0] if categories else "crypto"
    symbol = re.sub(r"[^A-Za-z]", "", name)[:5].upper()
    return {
        "name": name,
        "symbol": symbol,
        "thesis": (
            f"Backing an early-stage builder shipping a real {primary} product. "
            "This coin exists to support long-term development, not hype."
        ),
    }
