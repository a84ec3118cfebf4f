"""Collect the pull requests that are currently open."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .errors import RepositoryFetchError
from .forge_client import ForgeClient
from .ingest import FATAL_ERRORS

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class OpenPullRequest:
    repository: str
    number: int
    title: str
    author: str
    url: str
    created_at: str
    updated_at: str
    is_draft: bool = False
    labels: list[str] = field(default_factory=list)
    requested_reviewers: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, repository: str, data: dict) -> "OpenPullRequest":
        """Build an open pull request from a GitHub pull request item."""
        return cls(
            repository=repository,
            number=data["number"],
            title=data.get("title") or "",
            author=(data.get("user") or {}).get("login") or "unknown",
            url=data.get("html_url") or "",
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or data["created_at"],
            is_draft=bool(data.get("draft")),
            labels=[label["name"] for label in data.get("labels") or []],
            requested_reviewers=[
                reviewer["login"] for reviewer in data.get("requested_reviewers") or []
            ],
        )


@dataclass
class OpenPullRequestReport:
    pull_requests: list[OpenPullRequest] = field(default_factory=list)
    failures: list[RepositoryFetchError] = field(default_factory=list)


@dataclass
class OpenPullRequestStatistics:
    total: int = 0
    unique_authors: int = 0
    repositories: int = 0
    oldest_age_days: int = 0
    average_age_days: int = 0
    drafts: int = 0
    awaiting_review: int = 0


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _age_seconds(created_at: str, now: datetime | None) -> float:
    now = now or datetime.now(timezone.utc)
    return (now - _parse_timestamp(created_at)).total_seconds()


def fetch_open_pull_requests(
    client: ForgeClient, repositories: list[str]
) -> OpenPullRequestReport:
    """Fetch the open pull requests of every repository, newest first.

    A repository that fails is recorded in ``failures``; the others are
    still collected.

    Args:
        client: Provider client
        repositories: Repository identifiers ("owner/name")

    Returns:
        OpenPullRequestReport with the pull requests and the failed repositories
    """
    report = OpenPullRequestReport()

    for index, repository in enumerate(repositories, start=1):
        owner, repo = repository.split("/", 1)
        logger.info(f"[{index}/{len(repositories)}] Fetching open PRs from {repository}...")
        try:
            items = client.list_open_pull_requests(owner, repo)
        except FATAL_ERRORS as e:
            error = RepositoryFetchError(repository, e)
            logger.error(f"Error fetching open PRs from {error}")
            report.failures.append(error)
            continue

        report.pull_requests.extend(OpenPullRequest.from_api(repository, item) for item in items)
        logger.info(f"  Found {len(items)} open PRs")

    report.pull_requests.sort(key=lambda pr: _parse_timestamp(pr.created_at), reverse=True)
    return report


def open_pr_statistics(
    prs: list[OpenPullRequest], now: datetime | None = None
) -> OpenPullRequestStatistics:
    """Summarize a list of open pull requests.

    Ages are whole days. A pull request counts as awaiting review when it
    has at least one requested reviewer.
    """
    if not prs:
        return OpenPullRequestStatistics()

    ages = [int(_age_seconds(pr.created_at, now) // SECONDS_PER_DAY) for pr in prs]
    return OpenPullRequestStatistics(
        total=len(prs),
        unique_authors=len({pr.author for pr in prs}),
        repositories=len({pr.repository for pr in prs}),
        oldest_age_days=max(ages),
        average_age_days=round(sum(ages) / len(ages)),
        drafts=sum(1 for pr in prs if pr.is_draft),
        awaiting_review=sum(1 for pr in prs if pr.requested_reviewers),
    )


def format_age(created_at: str, now: datetime | None = None) -> str:
    """Describe how long ago a pull request was opened, e.g. ``3 days``."""
    seconds = max(_age_seconds(created_at, now), 0)
    days = int(seconds // SECONDS_PER_DAY)
    hours = int(seconds // 3600)

    if days == 0:
        if hours == 0:
            return "just now"
        return "1 hour" if hours == 1 else f"{hours} hours"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 14:
        return "1 week"
    if days < 30:
        return f"{days // 7} weeks"
    if days < 60:
        return "1 month"
    return f"{days // 30} months"
