"""Tests for the GitHub client using an in-memory httpx transport."""

import httpx
import pytest

from git_weekly_snapshot.errors import QuotaWaitTimeout, RateLimitExceeded
from git_weekly_snapshot.forges.github import PAGE_SIZE, GitHubClient

NOW = 1_000_000.0
HEADERS = {
    "X-RateLimit-Remaining": "4999",
    "X-RateLimit-Limit": "5000",
    "X-RateLimit-Reset": str(int(NOW) + 3600),
}


def _rate_limit_response(remaining, reset):
    return httpx.Response(
        200, json={"resources": {"core": {"remaining": remaining, "limit": 5000, "reset": reset}}}
    )


class Api:
    """Routes requests to canned responses and records them."""

    def __init__(self, routes, remaining=5000, reset=int(NOW) + 3600):
        self.routes = routes
        self.remaining = remaining
        self.reset = reset
        self.requests = []

    def __call__(self, request):
        if request.url.path == "/rate_limit":
            return _rate_limit_response(self.remaining, self.reset)

        self.requests.append(request)
        page = int(request.url.params.get("page", "1"))
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"}, headers=HEADERS)
        if isinstance(route, int):
            return httpx.Response(route, json={"message": "error"}, headers=HEADERS)
        if callable(route):
            return route(request)
        if isinstance(route, list) and route and isinstance(route[0], list):
            if page > len(route):
                return httpx.Response(404, json={"message": "Not Found"}, headers=HEADERS)
            return httpx.Response(200, json=route[page - 1], headers=HEADERS)
        return httpx.Response(200, json=route, headers=HEADERS)


def _client(api, **kwargs):
    sleeps = []
    client = GitHubClient(
        token="secret",
        transport=httpx.MockTransport(api),
        sleep=sleeps.append,
        clock=lambda: NOW,
        **kwargs,
    )
    return client, sleeps


def _items(count, **fields):
    return [{"sha": f"c{i}", **fields} for i in range(count)]


def test_list_commits_follows_pages_until_short_page():
    api = Api({"/repos/octo/api/commits": [_items(PAGE_SIZE), _items(30)]})
    client, _ = _client(api)

    commits = client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert len(commits) == PAGE_SIZE + 30
    assert client.get_api_call_count() == 2
    first = api.requests[0]
    assert first.url.params["since"] == "2025-12-22T00:00:00Z"
    assert first.url.params["until"] == "2025-12-28T23:59:59Z"
    assert first.url.params["per_page"] == "100"
    assert first.headers["Authorization"] == "Bearer secret"
    assert [r.url.params["page"] for r in api.requests] == ["1", "2"]


def test_rate_limit_is_tracked_from_headers():
    client, _ = _client(Api({"/repos/octo/api/commits": []}))

    client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert client.last_rate_limit.remaining == 4999
    assert client.last_rate_limit.limit == 5000


def test_not_found_is_a_soft_failure():
    client, _ = _client(Api({}))

    reviews = client.list_reviews("octo", "api", 7)

    assert reviews == []
    assert len(client.soft_failures) == 1
    assert client.soft_failures[0].resource == "octo/api#7 reviews"


def test_not_found_on_later_page_keeps_collected_items():
    # Only one full page exists; the second request gets a 404
    api = Api({"/repos/octo/api/commits": [_items(PAGE_SIZE)]})
    client, _ = _client(api)

    commits = client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert len(commits) == PAGE_SIZE
    assert len(client.soft_failures) == 1


def test_other_errors_propagate():
    client, _ = _client(Api({"/repos/octo/api/commits": 500}))

    with pytest.raises(httpx.HTTPStatusError):
        client.list_commits("octo", "api", "2025-12-22", "2025-12-28")
    assert client.soft_failures == []


def test_commit_detail_not_found_returns_none():
    client, _ = _client(Api({}))
    assert client.get_commit_detail("octo", "api", "abc") is None


def test_commit_detail():
    api = Api({"/repos/octo/api/commits/abc": {"sha": "abc", "stats": {"additions": 3}}})
    client, _ = _client(api)

    assert client.get_commit_detail("octo", "api", "abc")["stats"]["additions"] == 3


def test_waits_for_quota_reset_when_low():
    api = Api({"/repos/octo/api/commits": []}, remaining=10, reset=int(NOW) + 100)
    client, sleeps = _client(api, rate_limit_threshold=100)

    client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert sleeps == [101.0]
    assert len(api.requests) == 1


def test_no_wait_when_reset_already_passed():
    api = Api({"/repos/octo/api/commits": []}, remaining=0, reset=int(NOW) - 50)
    client, sleeps = _client(api)

    client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert sleeps == []


def test_quota_wait_beyond_ceiling_raises():
    api = Api({"/repos/octo/api/commits": []}, remaining=0, reset=int(NOW) + 7200)
    client, sleeps = _client(api, max_quota_wait=3900)

    with pytest.raises(QuotaWaitTimeout):
        client.list_commits("octo", "api", "2025-12-22", "2025-12-28")
    assert sleeps == []
    assert api.requests == []


def test_pull_requests_stop_at_older_page():
    recent = [{"number": i, "created_at": "2025-12-23T09:00:00Z"} for i in range(PAGE_SIZE - 1)]
    older = {"number": 999, "created_at": "2025-12-20T09:00:00Z"}
    api = Api({"/repos/octo/api/pulls": [recent + [older], _items(5)]})
    client, _ = _client(api)

    pulls = client.list_pull_requests("octo", "api", "2025-12-22")

    assert len(pulls) == PAGE_SIZE - 1
    assert all(pr["number"] != 999 for pr in pulls)
    assert len(api.requests) == 1
    params = api.requests[0].url.params
    assert params["state"] == "all"
    assert params["direction"] == "desc"


def test_discussion_comments_use_issue_endpoint():
    api = Api({"/repos/octo/api/issues/7/comments": [{"id": 1}]})
    client, _ = _client(api)

    assert client.list_discussion_comments("octo", "api", 7) == [{"id": 1}]


def test_reset_api_call_count():
    client, _ = _client(Api({"/repos/octo/api/pulls/1/comments": []}))
    client.list_review_comments("octo", "api", 1)

    assert client.get_api_call_count() == 1
    client.reset_api_call_count()
    assert client.get_api_call_count() == 0


def _rate_limited(status=403, retry_after="60", remaining="0"):
    headers = {
        "X-RateLimit-Remaining": remaining,
        "X-RateLimit-Limit": "5000",
        "X-RateLimit-Reset": str(int(NOW) + 60),
    }
    if retry_after is not None:
        headers["Retry-After"] = retry_after
    return httpx.Response(status, json={"message": "API rate limit exceeded"}, headers=headers)


def test_rate_limited_response_is_retried_after_waiting():
    responses = iter([_rate_limited(), httpx.Response(200, json=[{"sha": "c1"}], headers=HEADERS)])
    api = Api({"/repos/octo/api/commits": lambda request: next(responses)})
    client, sleeps = _client(api)

    commits = client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert commits == [{"sha": "c1"}]
    assert sleeps == [60.0]
    assert len(api.requests) == 2
    assert client.soft_failures == []


def test_rate_limit_without_retry_after_waits_for_reset():
    responses = iter(
        [_rate_limited(retry_after=None), httpx.Response(200, json=[], headers=HEADERS)]
    )
    client, sleeps = _client(Api({"/repos/octo/api/commits": lambda request: next(responses)}))

    client.list_commits("octo", "api", "2025-12-22", "2025-12-28")

    assert sleeps == [61.0]


def test_too_many_requests_is_retried():
    responses = iter(
        [
            _rate_limited(status=429, retry_after="5", remaining="4000"),
            httpx.Response(200, json={"sha": "abc"}, headers=HEADERS),
        ]
    )
    api = Api({"/repos/octo/api/commits/abc": lambda request: next(responses)})
    client, sleeps = _client(api)

    assert client.get_commit_detail("octo", "api", "abc") == {"sha": "abc"}
    assert sleeps == [5.0]


def test_rate_limit_gives_up_after_last_attempt():
    api = Api({"/repos/octo/api/commits": lambda request: _rate_limited(retry_after="2")})
    client, sleeps = _client(api)

    with pytest.raises(RateLimitExceeded):
        client.list_commits("octo", "api", "2025-12-22", "2025-12-28")
    assert sleeps == [2.0, 2.0]
    assert len(api.requests) == 3


def test_rate_limit_wait_beyond_ceiling_raises():
    api = Api({"/repos/octo/api/commits": lambda request: _rate_limited(retry_after="7200")})
    client, sleeps = _client(api, max_quota_wait=3900)

    with pytest.raises(QuotaWaitTimeout):
        client.list_commits("octo", "api", "2025-12-22", "2025-12-28")
    assert sleeps == []
    assert len(api.requests) == 1


def test_forbidden_without_rate_limit_signals_is_not_retried():
    api = Api({"/repos/octo/api/commits": 403})
    client, sleeps = _client(api)

    with pytest.raises(httpx.HTTPStatusError):
        client.list_commits("octo", "api", "2025-12-22", "2025-12-28")
    assert sleeps == []
    assert len(api.requests) == 1


def test_list_open_pull_requests():
    api = Api({"/repos/octo/api/pulls": [[{"number": 3}, {"number": 2}]]})
    client, _ = _client(api)

    assert [pr["number"] for pr in client.list_open_pull_requests("octo", "api")] == [3, 2]
    params = api.requests[0].url.params
    assert params["state"] == "open"
    assert params["sort"] == "created"
