"""Candidate discovery strategies.

Each strategy turns one or two search calls into a list of usernames worth
processing. The crawler picks one per cycle, round-robin.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from builder_scout.domain.github_interface import IGitHubClient
from builder_scout.domain.models import RateBudget
from builder_scout.domain.policy import DEFAULT_POLICY, ScoringPolicy

SEARCH_PAGES = 3


def page_for_cycle(cycle: int, strategy_count: int) -> int:
    """Rotate through the first few result pages as the same strategy comes round again."""
    return (cycle // max(strategy_count, 1)) % SEARCH_PAGES + 1


class DiscoveryStrategy(ABC):
    """Produces candidate usernames."""

    name: str = "strategy"

    @abstractmethod
    async def candidates(
        self, client: IGitHubClient, budget: RateBudget, now: datetime, page: int = 1
    ) -> Tuple[List[str], RateBudget]:
        """Return candidate usernames (possibly empty) and the updated budget."""
        pass


class TrendingRepoStrategy(DiscoveryStrategy):
    """Owners of mid-sized repositories pushed to in the last week."""

    name = "Trending Repos"

    def __init__(self, min_stars: int = 50, max_stars: int = 5000, pushed_within_days: int = 7, per_page: int = 30):
        self.min_stars = min_stars
        self.max_stars = max_stars
        self.pushed_within_days = pushed_within_days
        self.per_page = per_page

    def query(self, now: datetime) -> str:
        since = (now - timedelta(days=self.pushed_within_days)).date().isoformat()
        return f"stars:{self.min_stars}..{self.max_stars} pushed:>{since}"

    async def candidates(
        self, client: IGitHubClient, budget: RateBudget, now: datetime, page: int = 1
    ) -> Tuple[List[str], RateBudget]:
        repos, budget = await client.search_repositories(
            self.query(now), budget, sort="updated", per_page=self.per_page, page=page
        )
        usernames: List[str] = []
        for repo in repos:
            if repo.owner_type == "User" and repo.owner_login not in usernames:
                usernames.append(repo.owner_login)
        return usernames, budget


class TopicUserStrategy(DiscoveryStrategy):
    """Users matching a topic keyword inside the follower band."""

    def __init__(self, topic: str, policy: ScoringPolicy = DEFAULT_POLICY, min_repos: int = 3, per_page: int = 30):
        self.topic = topic
        self.name = topic.capitalize() if len(topic) > 3 else topic.upper()
        self.policy = policy
        self.min_repos = min_repos
        self.per_page = per_page

    def query(self) -> str:
        return (
            f"type:user followers:{self.policy.min_followers}..{self.policy.max_followers} "
            f"repos:>{self.min_repos} {self.topic}"
        )

    async def candidates(
        self, client: IGitHubClient, budget: RateBudget, now: datetime, page: int = 1
    ) -> Tuple[List[str], RateBudget]:
        return await client.search_users(self.query(), budget, per_page=self.per_page, page=page)


def default_strategies(policy: ScoringPolicy = DEFAULT_POLICY, topics: Sequence[str] = ("crypto", "ai", "web3")) -> List[DiscoveryStrategy]:
    return [TrendingRepoStrategy(max_stars=policy.max_repo_stars)] + [
        TopicUserStrategy(topic, policy) for topic in topics
    ]
