"""Translate GitHub payloads into domain records.

REST and GraphQL describe the same repository with different field names.
Both are converted here, and only here, so the evaluator sees one shape.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from builder_scout.domain.models import RateBudget, RawRepo, RawUser, parse_timestamp


logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamps(created: Optional[str], updated: Optional[str], pushed: Optional[str]):
    created_at = parse_timestamp(created) or _EPOCH
    updated_at = parse_timestamp(updated) or created_at
    # Empty repositories have no push date
    pushed_at = parse_timestamp(pushed) or updated_at
    return created_at, updated_at, pushed_at


def repo_from_rest(item: Dict[str, Any]) -> RawRepo:
    """Convert a REST repository object (search result or /users/{u}/repos entry)."""
    owner = item.get("owner") or {}
    created_at, updated_at, pushed_at = _timestamps(
        item.get("created_at"), item.get("updated_at"), item.get("pushed_at")
    )
    license_info = item.get("license") or {}
    return RawRepo(
        id=int(item["id"]),
        name=item["name"],
        full_name=item.get("full_name") or f"{owner.get('login', '')}/{item['name']}",
        owner_login=owner.get("login", ""),
        owner_type=owner.get("type", "User"),
        html_url=item.get("html_url", ""),
        description=item.get("description"),
        fork=bool(item.get("fork", False)),
        archived=bool(item.get("archived", False)),
        created_at=created_at,
        updated_at=updated_at,
        pushed_at=pushed_at,
        stargazers_count=item.get("stargazers_count") or 0,
        watchers_count=item.get("watchers_count") or 0,
        forks_count=item.get("forks_count") or 0,
        open_issues_count=item.get("open_issues_count") or 0,
        language=item.get("language"),
        topics=tuple(item.get("topics") or ()),
        license_key=license_info.get("key"),
        size_kb=item.get("size"),
        source="rest",
    )


def user_from_rest(item: Dict[str, Any]) -> RawUser:
    """Convert a REST /users/{login} object."""
    return RawUser(
        id=int(item["id"]),
        login=item["login"],
        type=item.get("type", "User"),
        name=item.get("name"),
        avatar_url=item.get("avatar_url", ""),
        html_url=item.get("html_url") or f"https://github.com/{item['login']}",
        bio=item.get("bio"),
        location=item.get("location"),
        blog=item.get("blog") or None,
        twitter_username=item.get("twitter_username"),
        company=item.get("company"),
        public_repos=item.get("public_repos") or 0,
        followers=item.get("followers") or 0,
        following=item.get("following") or 0,
        source="rest",
    )


def _total(node: Optional[Dict[str, Any]]) -> int:
    return (node or {}).get("totalCount") or 0


def repo_from_graphql(node: Dict[str, Any], owner: Dict[str, Any]) -> RawRepo:
    """Convert a GraphQL Repository node nested under its owner."""
    created_at, updated_at, pushed_at = _timestamps(
        node.get("createdAt"), node.get("updatedAt"), node.get("pushedAt")
    )
    topics = tuple(
        t["topic"]["name"]
        for t in (node.get("repositoryTopics") or {}).get("nodes") or []
        if t and t.get("topic")
    )
    language = (node.get("primaryLanguage") or {}).get("name")
    license_info = node.get("licenseInfo") or {}
    login = owner["login"]
    return RawRepo(
        id=int(node["databaseId"]),
        name=node["name"],
        full_name=node.get("nameWithOwner") or f"{login}/{node['name']}",
        owner_login=login,
        # GraphQL user search only returns personal accounts
        owner_type="User",
        html_url=node.get("url", ""),
        description=node.get("description"),
        fork=bool(node.get("isFork", False)),
        archived=bool(node.get("isArchived", False)),
        created_at=created_at,
        updated_at=updated_at,
        pushed_at=pushed_at,
        stargazers_count=node.get("stargazerCount") or 0,
        watchers_count=_total(node.get("watchers")),
        forks_count=node.get("forkCount") or 0,
        open_issues_count=_total(node.get("issues")),
        language=language,
        topics=topics,
        license_key=license_info.get("key"),
        size_kb=node.get("diskUsage"),
        source="graphql",
    )


def user_from_graphql(node: Dict[str, Any]) -> RawUser:
    """Convert a GraphQL User node."""
    login = node["login"]
    return RawUser(
        id=int(node["databaseId"]),
        login=login,
        type="User",
        name=node.get("name"),
        avatar_url=node.get("avatarUrl", ""),
        html_url=node.get("url") or f"https://github.com/{login}",
        bio=node.get("bio"),
        location=node.get("location"),
        blog=node.get("websiteUrl") or None,
        twitter_username=node.get("twitterUsername"),
        company=node.get("company"),
        public_repos=_total(node.get("repositories")),
        followers=_total(node.get("followers")),
        following=_total(node.get("following")),
        source="graphql",
    )


def budget_from_headers(headers: Mapping[str, str], fallback: RateBudget) -> RateBudget:
    """Read the X-RateLimit-* headers; anything missing keeps the previous value.

    Only the core bucket is tracked. Responses metered against another bucket
    (search, graphql) leave the budget unchanged.
    """
    resource = headers.get("X-RateLimit-Resource")
    if resource is not None and resource != "core":
        return fallback
    remaining = headers.get("X-RateLimit-Remaining")
    limit = headers.get("X-RateLimit-Limit")
    reset = headers.get("X-RateLimit-Reset")
    try:
        return RateBudget(
            remaining=int(remaining) if remaining is not None else fallback.remaining,
            limit=int(limit) if limit is not None else fallback.limit,
            reset_at=(
                datetime.fromtimestamp(int(reset), tz=timezone.utc)
                if reset is not None
                else fallback.reset_at
            ),
        )
    except ValueError:
        logger.warning(f"Ignoring malformed rate limit headers: {remaining}/{limit}/{reset}")
        return fallback


def budget_from_graphql(rate_limit: Optional[Dict[str, Any]], fallback: RateBudget) -> RateBudget:
    """Read the ``rateLimit { remaining limit resetAt }`` block of a GraphQL response."""
    if not rate_limit:
        return fallback
    return RateBudget(
        remaining=rate_limit.get("remaining", fallback.remaining),
        limit=rate_limit.get("limit", fallback.limit),
        reset_at=parse_timestamp(rate_limit.get("resetAt")) or fallback.reset_at,
    )
