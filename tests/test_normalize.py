"""Tests for REST and GraphQL payload normalization."""
from datetime import datetime, timezone

from builder_scout.domain.models import RateBudget
from builder_scout.infrastructure.normalize import (
    budget_from_graphql,
    budget_from_headers,
    repo_from_graphql,
    repo_from_rest,
    user_from_graphql,
    user_from_rest,
)

REST_REPO = {
    "id": 101,
    "name": "orbit",
    "full_name": "alice/orbit",
    "owner": {"login": "alice", "type": "User"},
    "html_url": "https://github.com/alice/orbit",
    "description": "A decentralized exchange",
    "fork": False,
    "archived": False,
    "created_at": "2024-04-02T12:00:00Z",
    "updated_at": "2024-05-27T12:00:00Z",
    "pushed_at": "2024-05-27T12:00:00Z",
    "stargazers_count": 12,
    "watchers_count": 12,
    "forks_count": 3,
    "open_issues_count": 1,
    "language": "Rust",
    "topics": ["defi", "solana"],
    "license": {"key": "mit"},
    "size": 2048,
}


def test_repo_from_rest():
    """Test converting a REST repository object."""
    repo = repo_from_rest(REST_REPO)

    assert repo.id == 101
    assert repo.owner_login == "alice"
    assert repo.owner_type == "User"
    assert repo.topics == ("defi", "solana")
    assert repo.license_key == "mit"
    assert repo.size_kb == 2048
    assert repo.pushed_at == datetime(2024, 5, 27, 12, 0, tzinfo=timezone.utc)
    assert repo.source == "rest"


def test_repo_from_rest_without_push_date():
    """Test that an empty repository falls back to its update time."""
    item = dict(REST_REPO, pushed_at=None, license=None, topics=None)

    repo = repo_from_rest(item)

    assert repo.pushed_at == repo.updated_at
    assert repo.license_key is None
    assert repo.topics == ()


def test_user_from_rest():
    """Test converting a REST user and dropping an empty blog."""
    user = user_from_rest({
        "id": 5,
        "login": "alice",
        "type": "User",
        "bio": "Builder",
        "blog": "",
        "public_repos": 25,
        "followers": 200,
        "following": 3,
    })

    assert user.login == "alice"
    assert user.blog is None
    assert user.html_url == "https://github.com/alice"
    assert user.followers == 200


def test_graphql_user_with_repos():
    """Test converting a GraphQL user node and its nested repositories."""
    node = {
        "databaseId": 5,
        "login": "alice",
        "url": "https://github.com/alice",
        "avatarUrl": "https://avatars.githubusercontent.com/u/5",
        "websiteUrl": "https://alice.dev",
        "twitterUsername": "alice",
        "followers": {"totalCount": 200},
        "following": {"totalCount": 3},
        "repositories": {"totalCount": 25, "nodes": []},
    }
    repo_node = {
        "databaseId": 101,
        "name": "orbit",
        "nameWithOwner": "alice/orbit",
        "url": "https://github.com/alice/orbit",
        "isFork": False,
        "isArchived": True,
        "stargazerCount": 12,
        "forkCount": 3,
        "watchers": {"totalCount": 4},
        "issues": {"totalCount": 2},
        "primaryLanguage": {"name": "Rust"},
        "repositoryTopics": {"nodes": [{"topic": {"name": "defi"}}, {"topic": {"name": "solana"}}]},
        "licenseInfo": None,
        "createdAt": "2024-04-02T12:00:00Z",
        "updatedAt": "2024-05-27T12:00:00Z",
        "pushedAt": "2024-05-27T12:00:00Z",
        "diskUsage": 512,
    }

    user = user_from_graphql(node)
    repo = repo_from_graphql(repo_node, node)

    assert user.public_repos == 25
    assert user.followers == 200
    assert user.blog == "https://alice.dev"
    assert user.source == "graphql"
    assert repo.full_name == "alice/orbit"
    assert repo.owner_login == "alice"
    assert repo.archived
    assert repo.watchers_count == 4
    assert repo.open_issues_count == 2
    assert repo.language == "Rust"
    assert repo.topics == ("defi", "solana")
    assert repo.license_key is None
    assert repo.source == "graphql"


def test_budget_from_headers():
    """Test reading the rate limit headers."""
    budget = budget_from_headers(
        {"X-RateLimit-Remaining": "42", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": "1717243200"},
        RateBudget(),
    )

    assert budget.remaining == 42
    assert budget.limit == 5000
    assert budget.reset_at == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_budget_from_headers_keeps_fallback():
    """Test that missing or malformed headers keep the previous budget."""
    fallback = RateBudget(remaining=10, limit=60)

    assert budget_from_headers({}, fallback) == fallback
    assert budget_from_headers({"X-RateLimit-Remaining": "many"}, fallback) == fallback


def test_budget_from_headers_ignores_other_buckets():
    """Test that search bucket headers do not replace the core budget."""
    fallback = RateBudget(remaining=4900, limit=5000)
    search_headers = {
        "X-RateLimit-Resource": "search",
        "X-RateLimit-Remaining": "29",
        "X-RateLimit-Limit": "30",
        "X-RateLimit-Reset": "1717243200",
    }

    assert budget_from_headers(search_headers, fallback) == fallback
    core = budget_from_headers(dict(search_headers, **{"X-RateLimit-Resource": "core"}), fallback)
    assert core.remaining == 29
    assert core.limit == 30


def test_budget_from_graphql():
    """Test reading the GraphQL rateLimit block."""
    budget = budget_from_graphql(
        {"remaining": 4990, "limit": 5000, "resetAt": "2024-06-01T13:00:00Z"}, RateBudget()
    )

    assert budget.remaining == 4990
    assert budget.reset_at == datetime(2024, 6, 1, 13, 0, tzinfo=timezone.utc)
    assert budget_from_graphql(None, budget) == budget
