"""One contributor's activity on a single day.

The day is fetched like a week run restricted to one date and recorded into
an in-memory snapshot of the surrounding week; nothing is persisted.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from .aggregator import create_empty, recompute_weekly_totals
from .errors import RepositoryFetchError
from .forge_client import ForgeClient
from .ingest import (
    FATAL_ERRORS,
    CommitActivity,
    PullRequestActivity,
    apply_activity,
    fetch_repository_activity,
)
from .models import DailyMetrics
from .weeks import DATE_PATTERN, parse_date, week_for_date

logger = logging.getLogger(__name__)

DAYS_AGO_PATTERN = re.compile(r"^-(\d+)$")
SHORT_DATE_PATTERN = re.compile(r"^(\d{2})(\d{2})(\d{2})$")


def parse_day_spec(spec: str, today: date | None = None) -> date:
    """Resolve a user-supplied day selector.

    Supported formats are ``today``, ``yesterday``, ``-N`` (N days ago),
    ``YYYY-MM-DD`` and ``YYMMDD``.

    Raises:
        ValueError: If the selector is not in a supported format
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    normalized = spec.strip().lower()

    if normalized == "today":
        return today
    if normalized == "yesterday":
        return today - timedelta(days=1)

    match = DAYS_AGO_PATTERN.match(normalized)
    if match:
        return today - timedelta(days=int(match.group(1)))
    try:
        if DATE_PATTERN.match(normalized):
            return parse_date(normalized)
        match = SHORT_DATE_PATTERN.match(normalized)
        if match:
            year, month, day = (int(part) for part in match.groups())
            return date(2000 + year, month, day)
    except ValueError:
        pass

    raise ValueError(
        f"Invalid date: {spec!r}. Supported formats: "
        "today, yesterday, -N, YYYY-MM-DD (e.g. 2025-12-23), YYMMDD (e.g. 251223)"
    )


@dataclass
class DailySummary:
    day: str
    username: str
    metrics: DailyMetrics = field(default_factory=DailyMetrics)
    commits: list[CommitActivity] = field(default_factory=list)
    pull_requests: list[PullRequestActivity] = field(default_factory=list)
    reviewed: list[PullRequestActivity] = field(default_factory=list)
    failures: list[RepositoryFetchError] = field(default_factory=list)

    @property
    def has_activity(self) -> bool:
        return bool(self.commits or self.pull_requests or self.reviewed)


def collect_daily_summary(
    client: ForgeClient,
    repositories: list[str],
    day: str | date,
    username: str,
    include_reviews: bool = True,
) -> DailySummary:
    """Collect one user's activity on one day across repositories.

    Usernames are compared case-insensitively. Reviews are only seen on pull
    requests opened that same day, since pull requests are listed by creation
    date.

    Args:
        client: Provider client
        repositories: Repository identifiers ("owner/name")
        day: The day to summarize
        username: Contributor to report on
        include_reviews: Also fetch reviews and comments of pull requests

    Returns:
        DailySummary with the user's metrics, commits and pull requests
    """
    day_key = parse_date(day).isoformat()
    wanted = username.lower()
    snapshot = create_empty(week_for_date(day_key), repositories)
    summary = DailySummary(day=day_key, username=username)

    for repository in repositories:
        try:
            activity = fetch_repository_activity(
                client, repository, day_key, day_key, include_reviews=include_reviews
            )
        except FATAL_ERRORS as e:
            error = RepositoryFetchError(repository, e)
            logger.error(f"Error fetching data from {error}")
            summary.failures.append(error)
            continue

        apply_activity(snapshot, activity, {day_key})

        summary.commits.extend(
            commit
            for commit in activity.commits
            if commit.day == day_key and commit.username.lower() == wanted
        )
        summary.pull_requests.extend(
            pr
            for pr in activity.pull_requests
            if pr.day == day_key and pr.author.lower() == wanted
        )
        reviewed_numbers = {
            review.pr_number
            for review in activity.reviews
            if review.day == day_key and review.author.lower() == wanted
        }
        summary.reviewed.extend(
            pr for pr in activity.pull_requests if pr.number in reviewed_numbers
        )

    recompute_weekly_totals(snapshot)
    for name, record in snapshot.users.items():
        if name.lower() == wanted and day_key in record.daily:
            summary.metrics.add(record.daily[day_key])

    return summary


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _short_name(repository: str) -> str:
    return repository.rsplit("/", 1)[-1]


def _grouped_commit_lines(commits: list[CommitActivity]) -> list[str]:
    """One line per distinct commit message, naming the repositories it landed in."""
    grouped: dict[str, tuple[list[str], int]] = {}
    for commit in commits:
        repos, count = grouped.get(commit.message, ([], 0))
        if _short_name(commit.repository) not in repos:
            repos.append(_short_name(commit.repository))
        grouped[commit.message] = (repos, count + 1)

    lines = []
    for message, (repos, count) in grouped.items():
        suffix = f" x{count}" if count > len(repos) else ""
        lines.append(f"{message} ({', '.join(repos)}){suffix}")
    return lines


def _pr_line(pr: PullRequestActivity) -> str:
    return f"#{pr.number} {pr.title} ({_short_name(pr.repository)})"


def format_daily_summary(summary: DailySummary, compact: bool = False) -> str:
    """Render a daily summary as plain text ready to paste into chat.

    Args:
        summary: Summary to render
        compact: Render a single ``DS:`` line instead of sections

    Returns:
        The rendered summary
    """
    metrics = summary.metrics
    reviewed_label = _plural(len(summary.reviewed), "PR") + " reviewed"
    if metrics.review_comments_given:
        reviewed_label += f" ({_plural(metrics.review_comments_given, 'review comment')})"

    if compact:
        if not summary.has_activity:
            return "DS: No activity"
        bullets = []
        if summary.commits:
            bullets.append(_plural(len(summary.commits), "commit"))
            bullets.extend(_grouped_commit_lines(summary.commits))
        if summary.pull_requests:
            bullets.append(_plural(len(summary.pull_requests), "PR") + " raised")
            bullets.extend(_pr_line(pr) for pr in summary.pull_requests)
        if summary.reviewed:
            bullets.append(reviewed_label)
            bullets.extend(_pr_line(pr) for pr in summary.reviewed)
        return "DS: " + " • ".join(bullets)

    label = parse_date(summary.day).strftime("%a, %b %d")
    header = f"Daily Summary - {label} ({summary.username})"
    if not summary.has_activity:
        return f"{header}\n\nNo GitHub activity found for this date."

    sections = []
    if summary.commits:
        lines = [_plural(len(summary.commits), "commit")]
        lines.extend(f"• {line}" for line in _grouped_commit_lines(summary.commits))
        lines.append(f"  +{metrics.lines_added} / -{metrics.lines_deleted} lines")
        sections.append("\n".join(lines))
    if summary.pull_requests:
        lines = [_plural(len(summary.pull_requests), "PR") + " raised"]
        lines.extend(f"• {_pr_line(pr)}" for pr in summary.pull_requests)
        sections.append("\n".join(lines))
    if summary.reviewed:
        lines = [reviewed_label]
        lines.extend(f"• {_pr_line(pr)}" for pr in summary.reviewed)
        sections.append("\n".join(lines))

    return header + "\n\n" + "\n\n".join(sections)
