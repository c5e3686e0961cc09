"""GitHub API interface (port) for fetching users and repositories.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
Every call takes the caller's current RateBudget and returns the updated one
alongside its result.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from builder_scout.domain.models import RateBudget, RawRepo, RawUser


class IGitHubClient(ABC):
    """Abstract interface for GitHub API operations."""

    @abstractmethod
    async def search_repositories(
        self, query: str, budget: RateBudget, sort: str = "updated", per_page: int = 30, page: int = 1
    ) -> Tuple[List[RawRepo], RateBudget]:
        """Search repositories.

        Args:
            query: GitHub search query (e.g. "stars:50..5000 pushed:>2024-01-01")
            budget: Quota known before the call
            sort: Sort field
            per_page: Results per page
            page: Page number (1-indexed)

        Returns:
            Matching repositories (empty on failure) and the updated budget
        """
        pass

    @abstractmethod
    async def search_users(
        self, query: str, budget: RateBudget, per_page: int = 30, page: int = 1
    ) -> Tuple[List[str], RateBudget]:
        """Search users, returning their logins (empty on failure)."""
        pass

    @abstractmethod
    async def fetch_user(self, username: str, budget: RateBudget) -> Tuple[Optional[RawUser], RateBudget]:
        """Fetch a user profile, or None if it could not be fetched."""
        pass

    @abstractmethod
    async def fetch_user_repos(
        self, username: str, budget: RateBudget, limit: int = 30
    ) -> Tuple[Optional[List[RawRepo]], RateBudget]:
        """Fetch up to ``limit`` repositories owned by ``username``, most recently updated first.

        Returns None instead of a list when the request failed.
        """
        pass

    @abstractmethod
    async def fetch_rate_limit(self, budget: RateBudget) -> RateBudget:
        """Ask GitHub for the current core quota. Falls back to ``budget`` on failure."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


class IGitHubGraphQLClient(ABC):
    """Abstract interface for the GraphQL user search."""

    @abstractmethod
    async def search_users_with_repos(
        self, query: str, budget: RateBudget, first: int = 20
    ) -> Tuple[Optional[List[Tuple[RawUser, List[RawRepo]]]], RateBudget]:
        """Search users and return each one with its own repositories in a single round trip.

        The list is None when the request failed and empty when nothing matched.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
