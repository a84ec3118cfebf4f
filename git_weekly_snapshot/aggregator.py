"""Fold activity events into a weekly snapshot.

Every ``record_*`` function mutates the snapshot in place and lazily creates
the user and date entries it needs. Callers must run
:func:`recompute_weekly_totals` after a batch of records and before the
snapshot is merged or saved.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from .models import DailyMetrics, UserWeekRecord, WeekSnapshot, utc_now_iso
from .weeks import WeekCoordinate, all_dates_in_week, format_week_string, parse_date


@dataclass
class WeekStatistics:
    """Team-wide totals for one week."""

    total_commits: int = 0
    total_prs: int = 0
    total_lines_added: int = 0
    total_lines_deleted: int = 0
    total_reviews: int = 0
    total_review_comments: int = 0
    total_discussion_comments: int = 0
    active_users: int = 0
    average_commits_per_user: int = 0
    average_prs_per_user: int = 0


def create_empty(coord: WeekCoordinate, repositories: Iterable[str] = ()) -> WeekSnapshot:
    """Create a snapshot with no recorded activity.

    Args:
        coord: Week the snapshot covers
        repositories: Repository identifiers ("owner/name") tracked for the week

    Returns:
        Empty WeekSnapshot
    """
    dates = all_dates_in_week(coord)
    repositories = list(dict.fromkeys(repositories))
    return WeekSnapshot(
        week=format_week_string(coord.year, coord.week),
        week_start=dates[0],
        week_end=dates[-1],
        generated_at=utc_now_iso(),
        repositories=repositories,
        repository_metrics={repo: DailyMetrics() for repo in repositories},
    )


def _day_key(snapshot: WeekSnapshot, day: str | date | datetime) -> str:
    key = parse_date(day).isoformat()
    if not snapshot.week_start <= key <= snapshot.week_end:
        raise ValueError(f"Date {key} is outside week {snapshot.week}")
    return key


def _user_day(snapshot: WeekSnapshot, username: str, day: str) -> DailyMetrics:
    record = snapshot.users.setdefault(username, UserWeekRecord())
    return record.daily.setdefault(day, DailyMetrics())


def _repository_day(snapshot: WeekSnapshot, repository: str, day: str) -> DailyMetrics:
    if repository not in snapshot.repositories:
        snapshot.repositories.append(repository)
    return snapshot.repository_daily.setdefault(repository, {}).setdefault(day, DailyMetrics())


def _increment(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    repository: str | None,
    **increments: int,
) -> None:
    for name, amount in increments.items():
        if amount < 0:
            raise ValueError(f"Cannot record a negative {name}: {amount}")

    key = _day_key(snapshot, day)
    targets = [_user_day(snapshot, username, key)]
    if repository:
        targets.append(_repository_day(snapshot, repository, key))

    for metrics in targets:
        for name, amount in increments.items():
            setattr(metrics, name, getattr(metrics, name) + amount)


def record_commit(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    lines_added: int = 0,
    lines_deleted: int = 0,
    repository: str | None = None,
) -> None:
    """Record one (non-merge) commit and its line changes."""
    _increment(
        snapshot,
        username,
        day,
        repository,
        commits=1,
        lines_added=lines_added,
        lines_deleted=lines_deleted,
    )


def record_pr(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    repository: str | None = None,
) -> None:
    """Record one opened pull request."""
    _increment(snapshot, username, day, repository, prs=1)


def record_review(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    count: int = 1,
    repository: str | None = None,
) -> None:
    """Record submitted pull request reviews."""
    _increment(snapshot, username, day, repository, reviews_given=count)


def record_review_comment(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    count: int = 1,
    repository: str | None = None,
) -> None:
    """Record line-level review comments."""
    _increment(snapshot, username, day, repository, review_comments_given=count)


def record_discussion_comment(
    snapshot: WeekSnapshot,
    username: str,
    day: str | date | datetime,
    count: int = 1,
    repository: str | None = None,
) -> None:
    """Record general pull request discussion comments."""
    _increment(snapshot, username, day, repository, discussion_comments_given=count)


def recompute_weekly_totals(snapshot: WeekSnapshot) -> None:
    """Rebuild every weekly roll-up from the daily entries.

    Safe to call any number of times.
    """
    for record in snapshot.users.values():
        record.weekly = record.daily_sum()

    repositories = list(dict.fromkeys([*snapshot.repositories, *snapshot.repository_daily]))
    totals = {}
    for repository in repositories:
        total = DailyMetrics()
        for metrics in snapshot.repository_daily.get(repository, {}).values():
            total.add(metrics)
        totals[repository] = total
    snapshot.repository_metrics = totals


def week_statistics(snapshot: WeekSnapshot) -> WeekStatistics:
    """Summarise a snapshot's weekly roll-ups across all users.

    A user counts as active when they have at least one commit or PR.
    """
    stats = WeekStatistics()
    team = DailyMetrics()
    for record in snapshot.users.values():
        team.add(record.weekly)
        if record.weekly.commits > 0 or record.weekly.prs > 0:
            stats.active_users += 1

    stats.total_commits = team.commits
    stats.total_prs = team.prs
    stats.total_lines_added = team.lines_added
    stats.total_lines_deleted = team.lines_deleted
    stats.total_reviews = team.reviews_given
    stats.total_review_comments = team.review_comments_given
    stats.total_discussion_comments = team.discussion_comments_given

    if stats.active_users:
        stats.average_commits_per_user = round(team.commits / stats.active_users)
        stats.average_prs_per_user = round(team.prs / stats.active_users)

    return stats


def team_totals(snapshot: WeekSnapshot) -> DailyMetrics:
    """Sum every user's weekly metrics."""
    total = DailyMetrics()
    for record in snapshot.users.values():
        total.add(record.weekly)
    return total

