"""Tests for the REST client against a local aiohttp server."""
import asyncio

from aiohttp import web
from aiohttp.test_utils import TestServer
from tenacity import wait_none

from builder_scout.application.crawler_service import CrawlerService
from builder_scout.application.strategies import TopicUserStrategy
from builder_scout.config import ScanSettings
from builder_scout.domain.models import RateBudget, Store
from builder_scout.infrastructure.github_client import GitHubRestClient
from conftest import FakeClock, MemoryStorage
from test_normalize import REST_REPO

RATE_HEADERS = {"X-RateLimit-Remaining": "4321", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": "1717243200"}


def _run(routes, scenario):
    async def main():
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        async with TestServer(app) as server:
            client = GitHubRestClient("token")
            client.BASE_URL = str(server.make_url("/")).rstrip("/")
            try:
                return await scenario(client)
            finally:
                await client.close()

    return asyncio.run(main())


def test_search_users_returns_logins_and_budget():
    """Test user search and rate limit header tracking."""
    seen = {}

    async def search_users(request):
        seen["q"] = request.query["q"]
        seen["auth"] = request.headers["Authorization"]
        return web.json_response({"items": [{"login": "alice"}, {"login": "bob"}]}, headers=RATE_HEADERS)

    logins, budget = _run(
        {"/search/users": search_users},
        lambda client: client.search_users("crypto", RateBudget()),
    )

    assert logins == ["alice", "bob"]
    assert budget.remaining == 4321
    assert seen == {"q": "crypto", "auth": "Bearer token"}


def test_fetch_user_repos_skips_malformed_items():
    """Test repository listing with one broken entry."""
    async def repos(request):
        return web.json_response([REST_REPO, {"name": "no-id"}], headers=RATE_HEADERS)

    result, _ = _run(
        {"/users/alice/repos": repos},
        lambda client: client.fetch_user_repos("alice", RateBudget()),
    )

    assert [r.full_name for r in result] == ["alice/orbit"]


def test_missing_user_returns_none():
    """Test a 404 profile."""
    async def missing(request):
        return web.json_response({"message": "Not Found"}, status=404, headers=RATE_HEADERS)

    user, budget = _run(
        {"/users/ghost": missing},
        lambda client: client.fetch_user("ghost", RateBudget()),
    )

    assert user is None
    assert budget.remaining == 4321


def test_exhausted_quota_is_reported_through_budget():
    """Test that a 403 with no quota left reaches the caller as a zero budget."""
    async def limited(request):
        headers = dict(RATE_HEADERS, **{"X-RateLimit-Remaining": "0"})
        return web.json_response({"message": "API rate limit exceeded"}, status=403, headers=headers)

    repos, budget = _run(
        {"/search/repositories": limited},
        lambda client: client.search_repositories("stars:50..5000", RateBudget()),
    )

    assert repos == []
    assert budget.remaining == 0


def test_server_errors_are_retried(monkeypatch):
    """Test that a 5xx is retried before succeeding."""
    monkeypatch.setattr(GitHubRestClient._request.retry, "wait", wait_none())
    attempts = []

    async def flaky(request):
        attempts.append(1)
        if len(attempts) < 3:
            return web.Response(status=502)
        return web.json_response({"resources": {"core": {"remaining": 4999, "limit": 5000, "reset": 1717243200}}})

    budget = _run({"/rate_limit": flaky}, lambda client: client.fetch_rate_limit(RateBudget(remaining=1)))

    assert len(attempts) == 3
    assert budget.remaining == 4999


def test_persistent_server_errors_return_empty_result(monkeypatch):
    """Test the fallback after the last retry."""
    monkeypatch.setattr(GitHubRestClient._request.retry, "wait", wait_none())

    async def broken(request):
        return web.Response(status=500)

    previous = RateBudget(remaining=77)
    logins, budget = _run(
        {"/search/users": broken},
        lambda client: client.search_users("ai", previous),
    )

    assert logins == []
    assert budget == previous


def test_malformed_body_returns_none():
    """Test a 200 response whose body is not valid JSON."""
    async def truncated(request):
        return web.Response(text='{"login": "alice"', content_type="application/json", headers=RATE_HEADERS)

    previous = RateBudget(remaining=77)
    user, budget = _run(
        {"/users/alice": truncated},
        lambda client: client.fetch_user("alice", previous),
    )

    assert user is None
    assert budget == previous


SEARCH_HEADERS = {
    "X-RateLimit-Resource": "search",
    "X-RateLimit-Remaining": "29",
    "X-RateLimit-Limit": "30",
    "X-RateLimit-Reset": "1717243200",
}
CORE_HEADERS = dict(RATE_HEADERS, **{"X-RateLimit-Resource": "core", "X-RateLimit-Remaining": "4900"})


async def _core_rate_limit(request):
    return web.json_response({"resources": {"core": {"remaining": 4900, "limit": 5000, "reset": 1717243200}}})


def _cycle(routes, storage, clock):
    async def scenario(client):
        crawler = CrawlerService(
            github_client=client,
            storage=storage,
            settings=ScanSettings(github_token="token"),
            clock=clock,
            strategies=[TopicUserStrategy("crypto")],
        )
        return await crawler.run_cycle(Store(), RateBudget(), 0)

    return _run(routes, scenario)


def test_cycle_ignores_search_bucket_budget():
    """Test that a nearly spent search quota does not stop the user batch."""
    fetched = []

    async def search_users(request):
        return web.json_response({"items": [{"login": "alice"}, {"login": "bob"}]}, headers=SEARCH_HEADERS)

    async def user(request):
        login = request.match_info["login"]
        fetched.append(login)
        followers = 200 if login == "alice" else 3
        return web.json_response(
            {"id": len(login), "login": login, "public_repos": 25, "followers": followers},
            headers=CORE_HEADERS,
        )

    async def repos(request):
        return web.json_response([REST_REPO], headers=CORE_HEADERS)

    clock = FakeClock()
    storage = MemoryStorage()
    metrics, budget = _cycle(
        {
            "/rate_limit": _core_rate_limit,
            "/search/users": search_users,
            "/users/{login}": user,
            "/users/{login}/repos": repos,
        },
        storage,
        clock,
    )

    assert fetched == ["alice", "bob"]
    assert metrics.candidates == 2
    assert metrics.users_processed == 2
    assert metrics.rate_limit_waits == 0
    assert budget.remaining == 4900
    assert budget.limit == 5000
    assert storage.saves[-1]["scan_state"]["users_processed"] == 2


def test_cycle_after_rejected_search_is_empty():
    """Test that a non-2xx search response ends the cycle without candidates."""
    async def search_users(request):
        return web.json_response({"message": "Validation Failed"}, status=422, headers=SEARCH_HEADERS)

    clock = FakeClock()
    storage = MemoryStorage()
    metrics, budget = _cycle(
        {"/rate_limit": _core_rate_limit, "/search/users": search_users},
        storage,
        clock,
    )

    assert metrics.candidates == 0
    assert metrics.users_processed == 0
    assert budget.remaining == 4900
    assert len(storage.saves) == 1
    assert storage.saves[0]["scan_state"]["cycles"] == 1
