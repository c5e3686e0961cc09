"""GitHub GraphQL API client: one query returns users together with their repositories."""
import asyncio
import logging
from typing import List, Optional, Tuple

from gql import gql, Client
from gql.transport.aiohttp import AIOHTTPTransport
from gql.transport.exceptions import TransportQueryError, TransportServerError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from builder_scout.domain.github_interface import IGitHubGraphQLClient
from builder_scout.domain.models import RateBudget, RawRepo, RawUser
from builder_scout.infrastructure.normalize import (
    budget_from_graphql,
    repo_from_graphql,
    user_from_graphql,
)


logger = logging.getLogger(__name__)


class GitHubGraphQLClient(IGitHubGraphQLClient):
    """GitHub GraphQL API client with retry on transport failures.

    Responses are converted into the same RawUser/RawRepo records the REST
    client produces before they leave this class.
    """

    SEARCH_USERS_QUERY = gql("""
        query SearchUsers($query: String!, $first: Int!, $repos: Int!) {
            rateLimit {
                remaining
                limit
                resetAt
            }
            search(query: $query, type: USER, first: $first) {
                userCount
                nodes {
                    ... on User {
                        databaseId
                        login
                        name
                        url
                        avatarUrl
                        bio
                        company
                        location
                        websiteUrl
                        twitterUsername
                        followers { totalCount }
                        following { totalCount }
                        repositories(
                            first: $repos
                            orderBy: { field: PUSHED_AT, direction: DESC }
                            ownerAffiliations: OWNER
                            isFork: false
                        ) {
                            totalCount
                            nodes {
                                databaseId
                                name
                                nameWithOwner
                                description
                                url
                                isArchived
                                isFork
                                stargazerCount
                                forkCount
                                watchers { totalCount }
                                issues(states: OPEN) { totalCount }
                                primaryLanguage { name }
                                repositoryTopics(first: 10) {
                                    nodes { topic { name } }
                                }
                                licenseInfo { key }
                                createdAt
                                updatedAt
                                pushedAt
                                diskUsage
                            }
                        }
                    }
                }
            }
        }
    """)

    def __init__(self, access_token: str, repos_per_user: int = 30):
        """Initialize GitHub GraphQL client.

        Args:
            access_token: GitHub personal access token
            repos_per_user: Repositories fetched per user (max 100)
        """
        self._access_token = access_token
        self._repos_per_user = min(repos_per_user, 100)
        self._transport: Optional[AIOHTTPTransport] = None
        self._client: Optional[Client] = None

    async def _init_client(self) -> None:
        """Initialize the GraphQL client (lazy initialization)."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._access_token}"}
            self._transport = AIOHTTPTransport(
                url="https://api.github.com/graphql",
                headers=headers
            )
            self._client = Client(
                transport=self._transport,
                fetch_schema_from_transport=False
            )

    @retry(
        retry=retry_if_exception_type((TransportServerError, asyncio.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    async def _execute_search(self, query: str, first: int) -> dict:
        await self._init_client()
        async with self._client as session:
            return await session.execute(
                self.SEARCH_USERS_QUERY,
                variable_values={"query": query, "first": first, "repos": self._repos_per_user},
            )

    async def search_users_with_repos(
        self, query: str, budget: RateBudget, first: int = 20
    ) -> Tuple[Optional[List[Tuple[RawUser, List[RawRepo]]]], RateBudget]:
        """Search users and return each with its repositories.

        Args:
            query: GitHub user search query
            budget: Quota known before the call
            first: Number of users to return (max 100)

        Returns:
            (user, repositories) pairs, None on failure, and the updated budget
        """
        try:
            result = await self._execute_search(query, min(first, 100))
        except TransportQueryError as e:
            logger.error(f"GraphQL errors for query '{query}': {e.errors}")
            return None, budget
        except (TransportServerError, asyncio.TimeoutError) as e:
            logger.error(f"GraphQL search '{query}' failed after retries: {e}")
            return None, budget

        budget = budget_from_graphql(result.get("rateLimit"), budget)
        search = result.get("search") or {}
        logger.info(f"GraphQL search '{query}' matched {search.get('userCount', 0)} users")

        users = []
        for node in search.get("nodes") or []:
            # Organizations come back as empty nodes from the User fragment
            if not node or not node.get("login"):
                continue
            try:
                user = user_from_graphql(node)
                repos = [
                    repo_from_graphql(repo_node, node)
                    for repo_node in (node.get("repositories") or {}).get("nodes") or []
                    if repo_node
                ]
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed GraphQL user node {node.get('login')}: {e}")
                continue
            users.append((user, repos))
        return users, budget

    async def close(self) -> None:
        """Close the GraphQL client and transport."""
        if self._transport:
            await self._transport.close()
            self._transport = None
            self._client = None
