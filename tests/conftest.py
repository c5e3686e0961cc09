"""Shared fakes and record factories for the test suite."""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from builder_scout.application.clock import Clock
from builder_scout.domain.github_interface import IGitHubClient
from builder_scout.domain.models import RateBudget, RawRepo, RawUser, Store
from builder_scout.domain.repository_interface import IStoreStorage

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_repo(repo_id: int = 1, name: str = "orbit", owner: str = "alice", **overrides) -> RawRepo:
    """A repository that passes every gate unless overridden."""
    values = dict(
        id=repo_id,
        name=name,
        full_name=f"{owner}/{name}",
        owner_login=owner,
        owner_type="User",
        html_url=f"https://github.com/{owner}/{name}",
        description="A decentralized exchange protocol for automated liquidity",
        fork=False,
        archived=False,
        created_at=NOW - timedelta(days=60),
        updated_at=NOW - timedelta(days=5),
        pushed_at=NOW - timedelta(days=5),
        stargazers_count=12,
        watchers_count=12,
        forks_count=3,
        topics=("defi", "solana"),
    )
    values.update(overrides)
    return RawRepo(**values)


def make_user(login: str = "alice", **overrides) -> RawUser:
    values = dict(
        id=sum(ord(c) for c in login),
        login=login,
        name=login.title(),
        avatar_url=f"https://avatars.githubusercontent.com/{login}",
        html_url=f"https://github.com/{login}",
        bio="Building onchain things",
        blog="https://example.com",
        public_repos=25,
        followers=200,
    )
    values.update(overrides)
    return RawUser(**values)


class FakeClock(Clock):
    """Clock whose sleeps return immediately and advance the current time."""

    def __init__(self, now: datetime = NOW):
        self.current = now
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


class FakeGitHubClient(IGitHubClient):
    """In-memory GitHub with per-method failure injection."""

    def __init__(self):
        self.users: Dict[str, RawUser] = {}
        self.repos: Dict[str, List[RawRepo]] = {}
        self.user_search: List[str] = []
        self.repo_search: List[RawRepo] = []
        self.rate_limit: Optional[RateBudget] = None
        self.search_errors: List[Exception] = []
        self.user_errors: Dict[str, Exception] = {}
        self.calls: List[str] = []

    def add(self, user: RawUser, repos: List[RawRepo]) -> None:
        self.users[user.login] = user
        self.repos[user.login] = list(repos)

    async def search_repositories(self, query, budget, sort="updated", per_page=30, page=1):
        self.calls.append(f"search_repositories:{query}:{page}")
        return list(self.repo_search), budget

    async def search_users(self, query, budget, per_page=30, page=1):
        self.calls.append(f"search_users:{query}:{page}")
        if self.search_errors:
            raise self.search_errors.pop(0)
        return list(self.user_search), budget

    async def fetch_user(self, username, budget):
        self.calls.append(f"fetch_user:{username}")
        if username in self.user_errors:
            raise self.user_errors[username]
        return self.users.get(username), RateBudget(budget.remaining - 1, budget.limit, budget.reset_at)

    async def fetch_user_repos(self, username, budget, limit=30):
        self.calls.append(f"fetch_user_repos:{username}")
        repos = self.repos.get(username)
        if repos is not None:
            repos = repos[:limit]
        return repos, RateBudget(budget.remaining - 1, budget.limit, budget.reset_at)

    async def fetch_rate_limit(self, budget):
        self.calls.append("fetch_rate_limit")
        return self.rate_limit or budget

    async def close(self):
        pass


class MemoryStorage(IStoreStorage):
    """Keeps every saved snapshot as a dict."""

    def __init__(self, store: Optional[Store] = None):
        self.store = store or Store()
        self.saves: List[dict] = []

    def load(self) -> Store:
        return self.store

    def save(self, store: Store, now: Optional[datetime] = None) -> None:
        self.saves.append(store.to_dict())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def github():
    return FakeGitHubClient()


@pytest.fixture
def storage():
    return MemoryStorage()
