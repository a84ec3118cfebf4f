"""Week-over-week comparison of snapshot roll-ups."""

from dataclasses import dataclass, field
from typing import Any, Iterable

from .aggregator import team_totals
from .models import NEW_CHANGE, ComparisonResult, DailyMetrics, WeekSnapshot

# Metrics compared between two weeks (attribute -> JSON key)
COMPARED_METRICS = {
    "commits": "commits",
    "prs": "prs",
    "lines_added": "linesAdded",
    "lines_deleted": "linesDeleted",
}


@dataclass
class WeekComparison:
    """Team and per-user comparison of two weeks."""

    current_week: str
    previous_week: str | None
    team: dict[str, ComparisonResult]
    users: dict[str, dict[str, ComparisonResult]] = field(default_factory=dict)

    @property
    def has_previous_week(self) -> bool:
        return self.previous_week is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentWeek": self.current_week,
            "previousWeek": self.previous_week,
            "hasPreviousWeek": self.has_previous_week,
            "comparisons": {
                "team": {
                    COMPARED_METRICS[name]: result.to_dict() for name, result in self.team.items()
                },
                "users": {
                    username: {
                        COMPARED_METRICS[name]: result.to_dict() for name, result in metrics.items()
                    }
                    for username, metrics in self.users.items()
                },
            },
        }


@dataclass
class WeekRollup:
    """Weekly totals of every metric, tagged with the week."""

    week: str
    metrics: DailyMetrics

    def to_dict(self) -> dict[str, Any]:
        return {"week": self.week, **self.metrics.to_dict()}


@dataclass
class TrendSeries:
    """Chronological per-week roll-ups for trend rendering."""

    weeks: list[str] = field(default_factory=list)
    team: list[WeekRollup] = field(default_factory=list)
    users: dict[str, list[WeekRollup]] = field(default_factory=dict)
    repositories: dict[str, list[WeekRollup]] = field(default_factory=dict)


def percentage_change(current: int, previous: int) -> ComparisonResult:
    """Classify and measure the change of one metric.

    The checks run in this order:

    1. both zero: no data, change 0
    2. previously zero: new, change is the ``NEW_CHANGE`` sentinel
    3. now zero: inactive, change -100
    4. otherwise the percentage change rounded to one decimal place

    Args:
        current: Value for the current week
        previous: Value for the previous week

    Returns:
        ComparisonResult with exactly one classification set
    """
    if current == 0 and previous == 0:
        return ComparisonResult(current, previous, change=0, delta=0, is_no_data=True)

    if current > 0 and previous == 0:
        return ComparisonResult(current, previous, change=NEW_CHANGE, delta=current, is_new=True)

    if current == 0 and previous > 0:
        return ComparisonResult(
            current, previous, change=-100, delta=-previous, is_inactive=True
        )

    change = round((current - previous) / previous * 100, 1)
    return ComparisonResult(current, previous, change=change, delta=current - previous)


def _compare_metrics(current: DailyMetrics, previous: DailyMetrics) -> dict[str, ComparisonResult]:
    return {
        name: percentage_change(getattr(current, name), getattr(previous, name))
        for name in COMPARED_METRICS
    }


def compare_weeks(current: WeekSnapshot, previous: WeekSnapshot | None) -> WeekComparison:
    """Compare two weeks at team level and for every contributor.

    When ``previous`` is None every metric is compared against zero. The
    per-user set covers everyone seen in either week, so a contributor who
    was only active in the previous week shows up as inactive.
    """
    if previous is None:
        return WeekComparison(
            current_week=current.week,
            previous_week=None,
            team=_compare_metrics(team_totals(current), DailyMetrics()),
            users={
                username: _compare_metrics(record.weekly, DailyMetrics())
                for username, record in sorted(current.users.items())
            },
        )

    users = {}
    for username in sorted(set(current.users) | set(previous.users)):
        current_record = current.users.get(username)
        previous_record = previous.users.get(username)
        users[username] = _compare_metrics(
            current_record.weekly if current_record else DailyMetrics(),
            previous_record.weekly if previous_record else DailyMetrics(),
        )

    return WeekComparison(
        current_week=current.week,
        previous_week=previous.week,
        team=_compare_metrics(team_totals(current), team_totals(previous)),
        users=users,
    )


def compare_multiple_weeks(snapshots: Iterable[WeekSnapshot]) -> TrendSeries:
    """Build team, per-user and per-repository time series.

    Snapshots are expected in chronological order. Users and repositories
    missing from a week get a zero entry for that week so every series has
    one point per week.
    """
    snapshots = list(snapshots)
    series = TrendSeries(weeks=[snapshot.week for snapshot in snapshots])
    if not snapshots:
        return series

    series.team = [WeekRollup(s.week, team_totals(s)) for s in snapshots]

    usernames = sorted({username for s in snapshots for username in s.users})
    for username in usernames:
        series.users[username] = [
            WeekRollup(
                s.week,
                s.users[username].weekly if username in s.users else DailyMetrics(),
            )
            for s in snapshots
        ]

    repositories = sorted({repo for s in snapshots for repo in s.repository_metrics})
    for repository in repositories:
        series.repositories[repository] = [
            WeekRollup(s.week, s.repository_metrics.get(repository, DailyMetrics()))
            for s in snapshots
        ]

    return series
