"""Base class for source-control provider API clients."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date


@dataclass
class RateLimit:
    """Remaining API quota as reported by the provider."""

    remaining: int
    limit: int
    reset_epoch: int


@dataclass
class SoftFailure:
    """A resource that could not be found; logged, never fatal."""

    resource: str
    reason: str


class ForgeClient(ABC):
    """Abstract base class for source-control provider clients.

    Listing methods page through results until a short page is returned.
    A resource that does not exist (404) ends the listing early with the
    items gathered so far and is recorded in ``soft_failures``. Any other
    error propagates to the caller.
    """

    def __init__(self, token: str | None = None):
        """Initialize the forge client.

        Args:
            token: API token for authentication (optional)
        """
        self.token = token
        self.api_call_count = 0
        self.soft_failures: list[SoftFailure] = []
        self.last_rate_limit: RateLimit | None = None

    @abstractmethod
    def get_forge_name(self) -> str:
        """Return the name of this forge (e.g., 'GitHub')."""

    @abstractmethod
    def get_rate_limit(self) -> RateLimit:
        """Fetch the current API quota."""

    @abstractmethod
    def list_commits(
        self, owner: str, repo: str, since: str | date, until: str | date
    ) -> list[dict]:
        """List commits authored between two dates, both inclusive.

        Args:
            owner: Repository owner
            repo: Repository name
            since: First day of the range ("YYYY-MM-DD")
            until: Last day of the range ("YYYY-MM-DD")

        Returns:
            Raw commit items as returned by the provider
        """

    @abstractmethod
    def list_pull_requests(self, owner: str, repo: str, since: str | date) -> list[dict]:
        """List pull requests created on or after ``since``."""

    @abstractmethod
    def list_open_pull_requests(self, owner: str, repo: str) -> list[dict]:
        """List currently open pull requests, newest first."""

    @abstractmethod
    def get_commit_detail(
self, owner: str, repo: str, sha: str) -> dict | None:
        """Fetch one commit including its ``stats``; None if it does not exist."""

    @abstractmethod
    def list_reviews(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        """List submitted reviews of a pull request."""

    @abstractmethod
    def list_review_comments(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        """List line-level review comments of a pull request."""

    @abstractmethod
    def list_discussion_comments(self, owner: str, repo: str, pr_number: int) -> list[dict]:
        """List general discussion comments of a pull request."""

    def get_api_call_count(self) -> int:
        """Get the number of API calls made by this client.

        Returns:
            Total number of API calls
        """
        return self.api_call_count

    def reset_api_call_count(self) -> None:
        """Reset the API call counter to zero."""
        self.api_call_count = 0
