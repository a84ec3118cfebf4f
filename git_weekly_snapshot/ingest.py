"""Fetch repository activity for a week and persist it as a snapshot.

One week is ingested at a time and repositories are processed one after
another. Each repository ends in an explicit :class:`RepositoryResult`;
a failed repository is reported but does not prevent the data gathered
from the other repositories from being saved.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import httpx

from .aggregator import (
    create_empty,
    record_commit,
    record_discussion_comment,
    record_pr,
    record_review,
    record_review_comment,
    recompute_weekly_totals,
)
from .errors import QuotaWaitTimeout, RateLimitExceeded, RepositoryFetchError
from .forge_client import ForgeClient
from .merge import dates_to_fetch, merge
from .models import WeekSnapshot
from .storage import SnapshotStore
from .weeks import WeekCoordinate, all_dates_in_week, parse_date

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_SOFT_FAILURE = "soft_failure"
STATUS_FATAL_FAILURE = "fatal_failure"

# Errors that make a repository fail as a whole
FATAL_ERRORS = (httpx.HTTPError, QuotaWaitTimeout, RateLimitExceeded)

EMAIL_LOCAL_PART = re.compile(r"^([^@]+)@")


def extract_username(
    login: str | None = None, email: str | None = None, name: str | None = None
) -> str:
    """Resolve the username an event is attributed to.

    Priority: explicit login, then the local part of the email address,
    then the display name lowercased with whitespace runs replaced by
    ``-``, and finally ``"unknown"``.
    """
    if login:
        return login

    if email:
        match = EMAIL_LOCAL_PART.match(email)
        if match:
            return match.group(1)

    if name and name.strip():
        return re.sub(r"\s+", "-", name.strip().lower())

    return "unknown"


@dataclass
class CommitActivity:
    repository: str
    sha: str
    username: str
    day: str
    additions: int = 0
    deletions: int = 0
    message: str = ""


@dataclass
class PullRequestActivity:
    repository: str
    number: int
    author: str
    day: str
    title: str = ""


@dataclass
class ReviewActivity:
    """A review, review comment or discussion comment on a pull request."""

    repository: str
    pr_number: int
    author: str
    day: str


@dataclass
class RepositoryActivity:
    """Everything fetched for one repository."""

    repository: str
    commits: list[CommitActivity] = field(default_factory=list)
    pull_requests: list[PullRequestActivity] = field(default_factory=list)
    reviews: list[ReviewActivity] = field(default_factory=list)
    review_comments: list[ReviewActivity] = field(default_factory=list)
    discussion_comments: list[ReviewActivity] = field(default_factory=list)


@dataclass
class RepositoryResult:
    """Outcome of ingesting one repository."""

    repository: str
    status: str = STATUS_OK
    commits: int = 0
    pull_requests: int = 0
    reviews: int = 0
    review_comments: int = 0
    discussion_comments: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status != STATUS_OK


@dataclass
class RunReport:
    """Outcome of ingesting one week."""

    week: WeekCoordinate
    dates_fetched: list[str] = field(default_factory=list)
    results: list[RepositoryResult] = field(default_factory=list)
    snapshot: WeekSnapshot | None = None
    saved: bool = False
    up_to_date: bool = False

    @property
    def failed_repositories(self) -> list[RepositoryResult]:
        return [result for result in self.results if result.failed]

    @property
    def is_partial(self) -> bool:
        """True when any repository failed; never reported as full success."""
        return bool(self.failed_repositories)


def _day(value: str | None) -> str | None:
    if not value:
        return None
    return parse_date(value).isoformat()


def fetch_repository_activity(
    client: ForgeClient,
    repository: str,
    since: str,
    until: str,
    include_reviews: bool = True,
) -> RepositoryActivity:
    """Fetch and normalise all activity of one repository in a date range.

    Merge commits (more than one parent) are skipped, as are commits whose
    details cannot be found.
    """
    owner, repo = repository.split("/", 1)
    activity = RepositoryActivity(repository=repository)

    logger.info(f"Fetching commits from {repository}...")
    for commit in client.list_commits(owner, repo, since, until):
        if len(commit.get("parents") or []) > 1:
            continue

        details = client.get_commit_detail(owner, repo, commit["sha"])
        if not details:
            continue

        info = commit.get("commit") or {}
        author = info.get("author") or {}
        day = _day(author.get("date"))
        if day is None:
            continue

        stats = details.get("stats") or {}
        activity.commits.append(
            CommitActivity(
                repository=repository,
                sha=commit["sha"],
                username=extract_username(
                    login=(commit.get("author") or {}).get("login"),
                    email=author.get("email"),
                    name=author.get("name"),
                ),
                day=day,
                additions=int(stats.get("additions") or 0),
                deletions=int(stats.get("deletions") or 0),
                message=(info.get("message") or "").split("\n", 1)[0],
            )
        )

    logger.info(f"Fetching pull requests from {repository}...")
    for pr in client.list_pull_requests(owner, repo, since):
        activity.pull_requests.append(
            PullRequestActivity(
                repository=repository,
                number=pr["number"],
                author=(pr.get("user") or {}).get("login") or "unknown",
                day=_day(pr["created_at"]),
                title=pr.get("title") or "",
            )
        )

    if include_reviews:
        for pr in activity.pull_requests:
            _fetch_review_activity(client, activity, owner, repo, pr.number)

    logger.info(
        f"{repository}: {len(activity.commits)} commits, {len(activity.pull_requests)} PRs, "
        f"{len(activity.reviews)} reviews, {len(activity.review_comments)} review comments, "
        f"{len(activity.discussion_comments)} discussion comments"
    )
    return activity


def _fetch_review_activity(
    client: ForgeClient, activity: RepositoryActivity, owner: str, repo: str, number: int
) -> None:
    for review in client.list_reviews(owner, repo, number):
        day = _day(review.get("submitted_at"))
        # Pending reviews have no submission time
        if day is None:
            continue
        activity.reviews.append(
            ReviewActivity(
                repository=activity.repository,
                pr_number=number,
                author=(review.get("user") or {}).get("login") or "unknown",
                day=day,
            )
        )

    for comment in client.list_review_comments(owner, repo, number):
        activity.review_comments.append(
            ReviewActivity(
                repository=activity.repository,
                pr_number=number,
                author=(comment.get("user") or {}).get("login") or "unknown",
                day=_day(comment["created_at"]),
            )
        )

    for comment in client.list_discussion_comments(owner, repo, number):
        activity.discussion_comments.append(
            ReviewActivity(
                repository=activity.repository,
                pr_number=number,
                author=(comment.get("user") or {}).get("login") or "unknown",
                day=_day(comment["created_at"]),
            )
        )


def apply_activity(
    snapshot: WeekSnapshot, activity: RepositoryActivity, dates: set[str]
) -> RepositoryResult:
    """Record fetched activity in a snapshot, keeping only the given dates.

    Returns:
        A successful RepositoryResult carrying the number of recorded events
    """
    result = RepositoryResult(repository=activity.repository)
    repository = activity.repository

    for commit in activity.commits:
        if commit.day in dates:
            record_commit(
                snapshot, commit.username, commit.day, commit.additions, commit.deletions, repository
            )
            result.commits += 1

    for pr in activity.pull_requests:
        if pr.day in dates:
            record_pr(snapshot, pr.author, pr.day, repository)
            result.pull_requests += 1

    for review in activity.reviews:
        if review.day in dates:
            record_review(snapshot, review.author, review.day, repository=repository)
            result.reviews += 1

    for comment in activity.review_comments:
        if comment.day in dates:
            record_review_comment(snapshot, comment.author, comment.day, repository=repository)
            result.review_comments += 1

    for comment in activity.discussion_comments:
        if comment.day in dates:
            record_discussion_comment(snapshot, comment.author, comment.day, repository=repository)
            result.discussion_comments += 1

    return result


def ingest_repository(
    client: ForgeClient,
    snapshot: WeekSnapshot,
    repository: str,
    dates: list[str],
    include_reviews: bool = True,
) -> RepositoryResult:
    """Fetch one repository's activity for ``dates`` into ``snapshot``.

    Transport, authentication and quota timeout errors are turned into a
    fatal result naming the repository; nothing from that repository is
    recorded. Not-found resources produce a soft failure and whatever was
    collected is still recorded.
    """
    soft_failures_before = len(client.soft_failures)
    try:
        activity = fetch_repository_activity(
            client, repository, dates[0], dates[-1], include_reviews=include_reviews
        )
    except FATAL_ERRORS as e:
        error = RepositoryFetchError(repository, e)
        logger.error(f"Error fetching data from {error}")
        return RepositoryResult(
            repository=repository, status=STATUS_FATAL_FAILURE, error=str(error)
        )

    result = apply_activity(snapshot, activity, set(dates))

    new_soft_failures = client.soft_failures[soft_failures_before:]
    if new_soft_failures:
        result.status = STATUS_SOFT_FAILURE
        result.error = "; ".join(failure.reason for failure in new_soft_failures)
    return result


def run_week(
    client: ForgeClient,
    store: SnapshotStore,
    coord: WeekCoordinate,
    repositories: list[str],
    force: bool = False,
    include_reviews: bool = True,
    today: date | None = None,
) -> RunReport:
    """Ingest one week and save the merged snapshot.

    Only days that the stored snapshot does not already cover are fetched.
    With ``force`` the stored snapshot is ignored and replaced (its previous
    version is kept as a backup by the store).

    Args:
        client: Provider client
        store: Snapshot store
        coord: Week to ingest
        repositories: Repository identifiers ("owner/name")
        force: Re-fetch the whole week instead of only missing days
        include_reviews: Also fetch reviews and comments of pull requests
        today: Current UTC date (defaults to now); days before it are marked fetched

    Returns:
        RunReport describing what was fetched, saved and what failed
    """
    if today is None:
        today = datetime.now(timezone.utc).date()

    report = RunReport(week=coord)
    all_dates = all_dates_in_week(coord)
    existing = None if force else store.load(coord)

    if existing is not None:
        dates = dates_to_fetch(existing, all_dates)
        if not dates:
            logger.info(f"All data already collected for week {coord}")
            report.snapshot = existing
            report.up_to_date = True
            return report
        logger.info(f"Missing data for {len(dates)} days: {', '.join(dates)}")
    else:
        dates = all_dates

    report.dates_fetched = dates
    fresh = create_empty(coord, repositories)

    for index, repository in enumerate(repositories, start=1):
        logger.info(f"[{index}/{len(repositories)}] {repository}")
        report.results.append(
            ingest_repository(client, fresh, repository, dates, include_reviews=include_reviews)
        )

    # A day is only marked as fetched once it is over and every repository answered
    if not any(result.status == STATUS_FATAL_FAILURE for result in report.results):
        fresh.fetched_dates = [day for day in dates if day < today.isoformat()]

    recompute_weekly_totals(fresh)
    snapshot = merge(existing, fresh) if existing is not None else fresh

    store.save(coord, snapshot)
    report.snapshot = snapshot
    report.saved = True

    if report.is_partial:
        failed = ", ".join(result.repository for result in report.failed_repositories)
        logger.warning(f"Week {coord} saved with partial data; failed repositories: {failed}")

    return report
