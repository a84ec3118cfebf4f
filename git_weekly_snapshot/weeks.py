"""ISO-8601 week calculations.

All date handling is done on calendar dates in UTC. Week 1 of a year is the
week containing January 4th and weeks run Monday through Sunday.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

WEEK_STRING_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True, order=True)
class WeekCoordinate:
    """An ISO week identified by (year, week)."""

    year: int
    week: int

    def __post_init__(self):
        if not isinstance(self.year, int) or not isinstance(self.week, int):
            raise ValueError(f"Invalid week coordinate: {self.year!r}-{self.week!r}")
        if self.week < 1 or self.week > weeks_in_year(self.year):
            raise ValueError(
                f"Invalid week number {self.week} for {self.year}: "
                f"must be between 1 and {weeks_in_year(self.year)}"
            )

    def __str__(self) -> str:
        return format_week_string(self.year, self.week)


def weeks_in_year(year: int) -> int:
    """Return the number of ISO weeks (52 or 53) in a year.

    December 28th always falls in the last ISO week of its year.
    """
    return date(year, 12, 28).isocalendar()[1]


def format_week_string(year: int, week: int) -> str:
    """Format a week as its storage key, e.g. ``2025-52``."""
    return f"{year:04d}-{week:02d}"


def parse_week_string(value: str) -> WeekCoordinate:
    """Parse a ``YYYY-WW`` string.

    Args:
        value: Week string such as "2025-52"

    Returns:
        The matching WeekCoordinate

    Raises:
        ValueError: If the string is malformed or the week is out of range
    """
    match = WEEK_STRING_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid week string: {value!r} (expected YYYY-WW)")
    return WeekCoordinate(int(match.group(1)), int(match.group(2)))


def parse_date(value: str | date | datetime) -> date:
    """Convert a date, datetime or ISO string into a calendar date.

    Timestamps are normalised to UTC before the date part is taken.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid date: {value!r}")

    text = value.strip()
    if DATE_PATTERN.match(text):
        return date.fromisoformat(text)

    # GitHub timestamps end in "Z", which fromisoformat only accepts on 3.11+
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return parse_date(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}") from None


def current_week(today: date | None = None) -> WeekCoordinate:
    """Return the ISO week containing today (UTC)."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return week_for_date(today)


def week_for_date(value: str | date | datetime) -> WeekCoordinate:
    """Return the ISO week containing a date."""
    year, week, _ = parse_date(value).isocalendar()
    return WeekCoordinate(year, week)


def week_date_range(coord: WeekCoordinate) -> tuple[date, date]:
    """Return the Monday and Sunday of an ISO week.

    Args:
        coord: Week to compute the range for

    Returns:
        Tuple of (start, end) calendar dates, both inclusive
    """
    start = date.fromisocalendar(coord.year, coord.week, 1)
    return start, start + timedelta(days=6)


def all_dates_in_week(coord: WeekCoordinate) -> list[str]:
    """Return the seven dates of a week as ascending ``YYYY-MM-DD`` strings."""
    start, _ = week_date_range(coord)
    return [(start + timedelta(days=offset)).isoformat() for offset in range(7)]


def previous_week(coord: WeekCoordinate) -> WeekCoordinate:
    """Return the week before ``coord``, rolling back into 52 or 53 week years."""
    if coord.week > 1:
        return WeekCoordinate(coord.year, coord.week - 1)
    return WeekCoordinate(coord.year - 1, weeks_in_year(coord.year - 1))


def next_week(coord: WeekCoordinate) -> WeekCoordinate:
    """Return the week after ``coord``."""
    if coord.week < weeks_in_year(coord.year):
        return WeekCoordinate(coord.year, coord.week + 1)
    return WeekCoordinate(coord.year + 1, 1)


def week_range(start: WeekCoordinate, end: WeekCoordinate) -> list[WeekCoordinate]:
    """Return every week from ``start`` to ``end`` inclusive.

    Returns an empty list when ``start`` is after ``end``.
    """
    weeks = []
    current = start
    while current <= end:
        weeks.append(current)
        current = next_week(current)
    return weeks


def resolve_week_spec(spec: str, today: date | None = None) -> WeekCoordinate:
    """Resolve a user-supplied week selector.

    Supported formats are ``current``, ``last``, ``YYYY-WW`` and any
    ``YYYY-MM-DD`` date, which selects the week containing it.

    Raises:
        ValueError: If the selector is not in a supported format
    """
    normalized = spec.strip().lower()

    if normalized == "current":
        return current_week(today)
    if normalized == "last":
        return previous_week(current_week(today))
    if WEEK_STRING_PATTERN.match(normalized):
        return parse_week_string(normalized)
    if DATE_PATTERN.match(normalized):
        return week_for_date(normalized)

    raise ValueError(
        f"Invalid week format: {spec!r}. Supported formats: "
        "current, last, YYYY-WW (e.g. 2025-52), YYYY-MM-DD (e.g. 2025-12-23)"
    )


def describe_week(coord: WeekCoordinate) -> str:
    """Human readable description, e.g. ``Week 2025-52 (2025-12-22 to 2025-12-28)``."""
    start, end = week_date_range(coord)
    return f"Week {coord} ({start.isoformat()} to {end.isoformat()})"
