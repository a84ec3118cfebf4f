"""Data models for weekly activity snapshots."""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from .errors import InvariantViolation
from .weeks import WeekCoordinate, parse_week_string, week_date_range

# Attribute name -> key used in persisted JSON
METRIC_KEYS = {
    "commits": "commits",
    "prs": "prs",
    "lines_added": "linesAdded",
    "lines_deleted": "linesDeleted",
    "reviews_given": "reviewsGiven",
    "review_comments_given": "reviewCommentsGiven",
    "discussion_comments_given": "discussionCommentsGiven",
}


@dataclass
class DailyMetrics:
    """Activity counters for one contributor (or repository) on one day."""

    commits: int = 0
    prs: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    reviews_given: int = 0
    review_comments_given: int = 0
    discussion_comments_given: int = 0

    def add(self, other: "DailyMetrics") -> None:
        """Add another set of metrics to this one, field by field."""
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def is_active(self) -> bool:
        """Return True if any commit, PR or line change was recorded."""
        return (
            self.commits > 0
            or self.prs > 0
            or self.lines_added > 0
            or self.lines_deleted > 0
        )

    def to_dict(self) -> dict[str, int]:
        return {key: getattr(self, attr) for attr, key in METRIC_KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "DailyMetrics":
        """Build metrics from persisted JSON, treating absent keys as zero.

        Older snapshots only carry commits, prs and line counts.
        """
        data = data or {}
        return cls(**{attr: int(data.get(key, 0) or 0) for attr, key in METRIC_KEYS.items()})


@dataclass
class UserWeekRecord:
    """Per-day metrics for one contributor plus their weekly roll-up."""

    daily: dict[str, DailyMetrics] = field(default_factory=dict)
    weekly: DailyMetrics = field(default_factory=DailyMetrics)

    def daily_sum(self) -> DailyMetrics:
        total = DailyMetrics()
        for metrics in self.daily.values():
            total.add(metrics)
        return total

    def check_weekly_invariant(self, username: str = "") -> None:
        """Raise InvariantViolation if ``weekly`` is not the sum of ``daily``."""
        expected = self.daily_sum()
        if self.weekly != expected:
            raise InvariantViolation(
                f"Weekly totals for {username or 'user'} do not match daily data: "
                f"{self.weekly} != {expected}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": {day: metrics.to_dict() for day, metrics in sorted(self.daily.items())},
            "weekly": self.weekly.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserWeekRecord":
        return cls(
            daily={
                day: DailyMetrics.from_dict(metrics)
                for day, metrics in (data.get("daily") or {}).items()
            },
            weekly=DailyMetrics.from_dict(data.get("weekly")),
        )


@dataclass
class WeekSnapshot:
    """Aggregated activity for one ISO week.

    ``repository_daily`` holds per-day repository activity so that repository
    totals can be merged day by day; ``repository_metrics`` is its weekly sum.
    ``fetched_dates`` lists days whose data was fetched after the day had ended;
    it is None for snapshots written before days were marked.
    """

    week: str
    week_start: str
    week_end: str
    generated_at: str
    repositories: list[str] = field(default_factory=list)
    repository_metrics: dict[str, DailyMetrics] = field(default_factory=dict)
    repository_daily: dict[str, dict[str, DailyMetrics]] = field(default_factory=dict)
    users: dict[str, UserWeekRecord] = field(default_factory=dict)
    fetched_dates: list[str] | None = field(default_factory=list)

    @property
    def coordinate(self) -> WeekCoordinate:
        return parse_week_string(self.week)

    def check_invariants(self) -> None:
        """Validate the week key, date range and every weekly roll-up.

        Raises:
            InvariantViolation: If any check fails
        """
        try:
            coord = self.coordinate
        except ValueError as e:
            raise InvariantViolation(f"Malformed week key: {e}") from e

        start, end = week_date_range(coord)
        if self.week_start != start.isoformat() or self.week_end != end.isoformat():
            raise InvariantViolation(
                f"Date range {self.week_start}..{self.week_end} does not match week {self.week}"
            )

        for username, record in self.users.items():
            record.check_weekly_invariant(username)

        for repository, daily in self.repository_daily.items():
            expected = DailyMetrics()
            for metrics in daily.values():
                expected.add(metrics)
            if self.repository_metrics.get(repository, DailyMetrics()) != expected:
                raise InvariantViolation(
                    f"Repository totals for {repository} do not match daily data"
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "week": self.week,
            "weekStart": self.week_start,
            "weekEnd": self.week_end,
            "generatedAt": self.generated_at,
            "repositories": list(self.repositories),
            "repositoryMetrics": {
                repo: metrics.to_dict() for repo, metrics in sorted(self.repository_metrics.items())
            },
            "repositoryDaily": {
                repo: {day: metrics.to_dict() for day, metrics in sorted(daily.items())}
                for repo, daily in sorted(self.repository_daily.items())
            },
            "users": {
                username: record.to_dict() for username, record in sorted(self.users.items())
            },
            "fetchedDates": sorted(self.fetched_dates or []),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WeekSnapshot":
        """Build a snapshot from persisted JSON.

        Raises:
            KeyError: If a required key is absent
        """
        return cls(
            week=data["week"],
            week_start=data["weekStart"],
            week_end=data["weekEnd"],
            generated_at=data.get("generatedAt", ""),
            repositories=list(data.get("repositories") or []),
            repository_metrics={
                repo: DailyMetrics.from_dict(metrics)
                for repo, metrics in (data.get("repositoryMetrics") or {}).items()
            },
            repository_daily={
                repo: {day: DailyMetrics.from_dict(metrics) for day, metrics in daily.items()}
                for repo, daily in (data.get("repositoryDaily") or {}).items()
            },
            users={
                username: UserWeekRecord.from_dict(record)
                for username, record in (data.get("users") or {}).items()
            },
            fetched_dates=(
                list(data["fetchedDates"]) if data.get("fetchedDates") is not None else None
            ),
        )


# Sentinel used for the "change" of a newly active metric instead of infinity
NEW_CHANGE = "new"


@dataclass
class ComparisonResult:
    """Week-over-week change of a single metric."""

    current: int
    previous: int
    change: float | str
    delta: int
    is_new: bool = False
    is_inactive: bool = False
    is_no_data: bool = False

    @property
    def classification(self) -> str:
        if self.is_no_data:
            return "no_data"
        if self.is_new:
            return "new"
        if self.is_inactive:
            return "inactive"
        return "normal"

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "previous": self.previous,
            "change": self.change,
            "delta": self.delta,
            "isNew": self.is_new,
            "isInactive": self.is_inactive,
            "isNoData": self.is_no_data,
        }


@dataclass
class ScoreBreakdown:
    """Composite contribution score split by category."""

    commits: float = 0.0
    prs: float = 0.0
    reviews: float = 0.0
    code: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "commits": self.commits,
            "prs": self.prs,
            "reviews": self.reviews,
            "code": self.code,
            "total": self.total,
        }


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 timestamp."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
