"""GitHub REST API client implementation with rate limit tracking and retry logic."""
import asyncio
import logging
from typing import Any, List, Optional, Tuple

import aiohttp
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from builder_scout.domain.github_interface import IGitHubClient
from builder_scout.domain.models import RateBudget, RawRepo, RawUser
from builder_scout.infrastructure.normalize import (
    budget_from_headers,
    repo_from_rest,
    user_from_rest,
)


logger = logging.getLogger(__name__)


class GitHubServerError(Exception):
    """Raised when GitHub answers with a 5xx status."""
    pass


class GitHubRestClient(IGitHubClient):
    """GitHub REST API client.

    Implements the IGitHubClient port. Each call returns the budget read from
    the X-RateLimit-* response headers, so no quota state lives in the client.
    Connection errors, timeouts and 5xx responses are retried with exponential
    backoff; after the last attempt, or on any other non-2xx status, the call
    logs and returns an empty result.
    """

    BASE_URL = "https://api.github.com"

    def __init__(self, access_token: str, session: Optional[aiohttp.ClientSession] = None):
        """Initialize GitHub client.

        Args:
            access_token: GitHub personal access token
            session: Existing aiohttp session to reuse (created lazily otherwise)
        """
        self._access_token = access_token
        self._session = session
        self._owns_session = session is None

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _init_session(self) -> aiohttp.ClientSession:
        """Initialize the HTTP session (lazy initialization)."""
        if self._session is None:
            self._session = aiohttp.ClientSession(headers=self._headers())
        return self._session

    @retry(
        retry=retry_if_exception_type(
            (GitHubServerError, aiohttp.ClientConnectionError, asyncio.TimeoutError)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _request(self, path: str, params: Optional[dict] = None) -> Tuple[int, Any, Any]:
        """Execute one GET request.

        Returns:
            (status, decoded JSON body or None, response headers)

        Raises:
            GitHubServerError: On 5xx responses, so tenacity retries them
        """
        session = await self._init_session()
        async with session.get(f"{self.BASE_URL}{path}", params=params) as response:
            if response.status >= 500:
                raise GitHubServerError(f"{path} returned {response.status}")
            body = None
            if response.status < 300:
                body = await response.json()
            return response.status, body, response.headers

    async def _get_json(self, path: str, budget: RateBudget, params: Optional[dict] = None) -> Tuple[Any, RateBudget]:
        """GET ``path`` and return its JSON body (None on failure) with the updated budget."""
        try:
            status, body, headers = await self._request(path, params)
        except (GitHubServerError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"GitHub request {path} failed after retries: {e}")
            return None, budget
        except ValueError as e:
            logger.error(f"GitHub request {path} returned a malformed body: {e}")
            return None, budget

        new_budget = budget_from_headers(headers, budget)
        if status in (403, 429) and new_budget.remaining == 0:
            logger.warning(f"Rate limit exhausted on {path}, resets at {new_budget.reset_at}")
        elif status >= 300:
            logger.warning(f"GitHub request {path} returned {status}")
        return body, new_budget

    async def search_repositories(
        self, query: str, budget: RateBudget, sort: str = "updated", per_page: int = 30, page: int = 1
    ) -> Tuple[List[RawRepo], RateBudget]:
        params = {"q": query, "sort": sort, "per_page": per_page, "page": page}
        data, budget = await self._get_json("/search/repositories", budget, params)
        if not data:
            logger.error(f"Repository search failed: {query}")
            return [], budget
        return self._parse_repos(data.get("items", [])), budget

    async def search_users(
        self, query: str, budget: RateBudget, per_page: int = 30, page: int = 1
    ) -> Tuple[List[str], RateBudget]:
        params = {"q": query, "per_page": per_page, "page": page}
        data, budget = await self._get_json("/search/users", budget, params)
        if not data:
            logger.error(f"User search failed: {query}")
            return [], budget
        return [item["login"] for item in data.get("items", []) if item.get("login")], budget

    async def fetch_user(self, username: str, budget: RateBudget) -> Tuple[Optional[RawUser], RateBudget]:
        data, budget = await self._get_json(f"/users/{username}", budget)
        if not data:
            return None, budget
        return user_from_rest(data), budget

    async def fetch_user_repos(
        self, username: str, budget: RateBudget, limit: int = 30
    ) -> Tuple[Optional[List[RawRepo]], RateBudget]:
        params = {"per_page": min(limit, 100), "sort": "updated", "type": "owner"}
        data, budget = await self._get_json(f"/users/{username}/repos", budget, params)
        if data is None:
            return None, budget
        return self._parse_repos(data)[:limit], budget

    async def fetch_rate_limit(self, budget: RateBudget) -> RateBudget:
        # /rate_limit does not count against the quota
        data, budget = await self._get_json("/rate_limit", budget)
        if not data:
            return budget
        core = data.get("resources", {}).get("core", {})
        return budget_from_headers(
            {
                "X-RateLimit-Remaining": str(core.get("remaining", budget.remaining)),
                "X-RateLimit-Limit": str(core.get("limit", budget.limit)),
                **({"X-RateLimit-Reset": str(core["reset"])} if "reset" in core else {}),
            },
            budget,
        )

    @staticmethod
    def _parse_repos(items: List[dict]) -> List[RawRepo]:
        repos = []
        for item in items:
            try:
                repos.append(repo_from_rest(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed repository item {item.get('id')}: {e}")
        return repos

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None
