"""GitHub API client implementation."""

import logging
import time
from datetime import date
from typing import Callable

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from ..errors import QuotaWaitTimeout, RateLimitExceeded, ResourceNotFound
from ..forge_client import ForgeClient, RateLimit, SoftFailure
from ..weeks import parse_date

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
DEFAULT_RATE_LIMIT_THRESHOLD = 100
# One full reset window (an hour) plus a few minutes of slack
DEFAULT_MAX_QUOTA_WAIT = 3900.0
RESET_SAFETY_MARGIN = 1.0
RATE_LIMIT_ATTEMPTS = 3
# Used when a rate-limit response names neither Retry-After nor a reset time
DEFAULT_RATE_LIMIT_WAIT = 60.0


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return response.status_code == 403 and (
        response.headers.get("X-RateLimit-Remaining") == "0" or "Retry-After" in response.headers
    )


class GitHubClient(ForgeClient):
    """GitHub REST API client with quota-aware pagination."""

    def __init__(
        self,
        token: str | None = None,
        endpoint: str = "https://api.github.com",
        rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD,
        max_quota_wait: float = DEFAULT_MAX_QUOTA_WAIT,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize GitHub client.

        Args:
            token: GitHub personal access token
            endpoint: API endpoint URL (for GitHub Enterprise)
            rate_limit_threshold: Wait for a quota reset when fewer requests remain
            max_quota_wait: Longest acceptable wait for a reset, in seconds
            transport: Optional httpx transport (used by tests)
            sleep: Function used to block while waiting for the quota
            clock: Function returning the current epoch time in seconds
        """
        super().__init__(token)
        self.endpoint = endpoint.rstrip("/")
        self.rate_limit_threshold = rate_limit_threshold
        self.max_quota_wait = max_quota_wait
        self.transport = transport
        self.sleep = sleep
        self.clock = clock
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def get_forge_name(self) -> str:
        """Return the forge name."""
        return "GitHub"

    def _client(self) -> httpx.Client:
        return httpx.Client(headers=self.headers, timeout=30.0, transport=self.transport)

    def get_rate_limit(self) -> RateLimit:
        """Fetch the core API quota from the ``/rate_limit`` endpoint.

        This endpoint does not count against the quota.
        """
        with self._client() as client:
            response = client.get(f"{self.endpoint}/rate_limit")
            response.raise_for_status()
            core = response.json()["resources"]["core"]

        rate_limit = RateLimit(
            remaining=int(core["remaining"]),
            limit=int(core["limit"]),
            reset_epoch=int(core["reset"]),
        )
        self.last_rate_limit = rate_limit
        return rate_limit

    def _update_rate_limit(self, response: httpx.Response) -> None:
        """Track the quota reported in response headers, when present."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        limit = response.headers.get("X-RateLimit-Limit")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining and limit and reset and remaining.isdigit() and reset.isdigit():
            self.last_rate_limit = RateLimit(
                remaining=int(remaining), limit=int(limit), reset_epoch=int(reset)
            )

    def wait_for_quota(self) -> None:
        """Block until enough API quota is available.

        Uses the quota seen on the last response, or asks the API when none
        is known yet. When fewer than ``rate_limit_threshold`` requests
        remain, sleeps until the reset time plus a one second margin.

        Raises:
            QuotaWaitTimeout: If the reset is further away than ``max_quota_wait``
        """
        rate_limit = self.last_rate_limit
        if rate_limit is None:
            try:
                rate_limit = self.get_rate_limit()
            except (httpx.HTTPError, KeyError, ValueError) as e:
                logger.warning(f"Could not check rate limit: {e}")
                return

        if rate_limit.remaining >= self.rate_limit_threshold:
            return

        wait_seconds = rate_limit.reset_epoch - self.clock() + RESET_SAFETY_MARGIN
        if wait_seconds <= 0:
            self.last_rate_limit = None
            return

        if wait_seconds > self.max_quota_wait:
            raise QuotaWaitTimeout(wait_seconds, self.max_quota_wait)

        logger.warning(
            f"Rate limit approaching ({rate_limit.remaining}/{rate_limit.limit} remaining), "
            f"waiting {wait_seconds:.0f}s for reset"
        )
        self.sleep(wait_seconds)
        # Force a fresh quota reading after the reset
        self.last_rate_limit = None

    def _get(self, client: httpx.Client, url: str, resource: str, params: dict | None = None):
        """Make one quota-checked GET request.

        Rate-limit responses are retried after the wait the API asks for.

        Raises:
            ResourceNotFound: On a 404 response
            QuotaWaitTimeout: If a rate-limit wait exceeds ``max_quota_wait``
            RateLimitExceeded: If the API is still rate limiting after the last attempt
            httpx.HTTPStatusError: On any other error status
        """
        retrying = Retrying(
            retry=retry_if_exception_type(RateLimitExceeded),
            wait=self._wait_after_rate_limit,
            stop=stop_after_attempt(RATE_LIMIT_ATTEMPTS),
            sleep=self.sleep,
            reraise=True,
        )
        return retrying(self._request, client, url, resource, params)

    def _request(self, client: httpx.Client, url: str, resource: str, params: dict | None):
        self.wait_for_quota()
        logger.debug(f"GitHub API: GET {url} (params: {params})")
        response = client.get(url, params=params)
        self.api_call_count += 1
        self._update_rate_limit(response)

        if response.status_code == 404:
            raise ResourceNotFound(resource)
        if _is_rate_limited(response):
            wait_seconds = self._rate_limit_wait(response)
            # The quota seen on this response is stale once the wait is over
            self.last_rate_limit = None
            if wait_seconds > self.max_quota_wait:
                raise QuotaWaitTimeout(wait_seconds, self.max_quota_wait)
            raise RateLimitExceeded(resource, wait_seconds)
        response.raise_for_status()
        return response.json()

    def _rate_limit_wait(self, response: httpx.Response) -> float:
        """Seconds to wait before retrying a rate-limited request."""
        retry_after = response.headers.get("Retry-After", "")
        if retry_after.isdigit():
            return float(retry_after)

        reset = response.headers.get("X-RateLimit-Reset", "")
        if reset.isdigit():
            return max(int(reset) - self.clock() + RESET_SAFETY_MARGIN, 0.0)

        return DEFAULT_RATE_LIMIT_WAIT

    def _wait_after_rate_limit(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception()
        logger.warning(
            f"{error} (attempt {retry_state.attempt_number}/{RATE_LIMIT_ATTEMPTS})"
        )
        return error.wait_seconds

    def _paginate(
        self,
        url: str,
        resource: str,
        params: dict | None = None,
        keep: Callable[[dict], bool] | None = None,
        stop: Callable[[list[dict]], bool] | None = None,
    ) -> list[dict]:
        """Collect every page of a list endpoint.

        Args:
            url: API endpoint URL
            resource: Human readable resource name for logs and failures
            params: Query parameters
            keep: Optional filter applied to every item
            stop: Optional predicate on a full page that ends pagination early

        Returns:
            All collected items; on a 404 the items gathered so far
        """
        results: list[dict] = []
        page_num = 1

        with self._client() as client:
            while True:
                page_params = {**(params or {}), "per_page": PAGE_SIZE, "page": page_num}
                try:
                    data = self._get(client, url, resource, page_params)
                except ResourceNotFound as e:
                    logger.warning(f"{e}; keeping {len(results)} items already collected")
                    self.soft_failures.append(SoftFailure(resource=resource, reason=str(e)))
                    break

                if not isinstance(data, list):
                    data = [data]
                logger.debug(f"GitHub API: Received {len(data)} items")
                results.extend(item for item in data if keep is None or keep(item))

                if len(data) < PAGE_SIZE or (stop is not None and stop(data)):
                    break
                page_num += 1

        logger.debug(f"GitHub API: Total results for {resource}: {len(results)}")
        return results

    def list_commits(
        self, owner: str, repo: str, since: str | date, until: str | date
    ) -> list[dict]:
        """List commits on the default branch between two days, inclusive."""
        params = {
            "since": f"{parse_date(since).isoformat()}T00:00:00Z",
            "until": f"{parse_date(until).isoformat()}T23:59:59Z",
        }
        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/commits",
            resource=f"{owner}/{repo} commits",
            params=params,
        )

    def list_pull_requests(self, owner: str, repo: str, since: str | date) -> list[dict]:
        """List pull requests created on or after ``since``.

        The API cannot filter by creation date, so pull requests are listed
        newest first and paging stops once a page reaches older ones.
        """
        since_day = parse_date(since)

        def created_on_or_after(pr: dict) -> bool:
            return parse_date(pr["created_at"]) >= since_day

        def reached_older(page: list[dict]) -> bool:
            return bool(page) and not created_on_or_after(page[-1])

        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/pulls",
            resource=f"{owner}/{repo} pull requests",
            params={"state": "all", "sort": "created", "direction": "desc"},
            keep=created_on_or_after,
            stop=reached_older,
        )

    def list_open_pull_requests(self, owner: str, repo: str) -> list[dict]:
        """List open pull requests, newest first."""
        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/pulls",
            resource=f"{owner}/{repo} open pull requests",
            params={"state": "open", "sort": "created", "direction": "desc"},
        )

    def get_commit_detail(self, owner: str, repo: str, sha: str) -> dict | None:
        """Fetch a single commit with its line statistics."""
        with self._client() as client:
            try:
                return self._get(
                    client,
                    f"{self.endpoint}/repos/{owner}/{repo}/commits/{sha}",
                    resource=f"commit {sha} in {owner}/{repo}",
                )
            except ResourceNotFound as e:
                logger.warning(str(e))
                return None

    def list_reviews(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/pulls/{pr_number}/reviews",
            resource=f"{owner}/{repo}#{pr_number} reviews",
        )

    def list_review_comments(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/pulls/{pr_number}/comments",
            resource=f"{owner}/{repo}#{pr_number} review comments",
        )

    def list_discussion_comments(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        # Issues and pull requests share numbering; PR conversation lives on the issue
        return self._paginate(
            f"{self.endpoint}/repos/{owner}/{repo}/issues/{pr_number}/comments",
            resource=f"{owner}/{repo}#{pr_number} discussion comments",
        )
