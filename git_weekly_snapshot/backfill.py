"""Detect and fill weeks that have no stored snapshot."""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from .storage import SnapshotStore
from .weeks import WeekCoordinate, current_week, week_for_date, week_range

logger = logging.getLogger(__name__)


@dataclass
class BackfillResult:
    """Summary of a backfill run."""

    successful: list[WeekCoordinate] = field(default_factory=list)
    failed: list[tuple[WeekCoordinate, str]] = field(default_factory=list)


def detect_missing_weeks(
    store: SnapshotStore, start_date: date, today: date | None = None
) -> list[WeekCoordinate]:
    """Return every week from ``start_date`` to the current week without a snapshot.

    Args:
        store: Snapshot store to check
        start_date: First day of the tracked period
        today: Current date (defaults to today, UTC)

    Returns:
        Missing weeks, oldest first
    """
    existing = set(store.list())
    weeks = week_range(week_for_date(start_date), current_week(today))
    return [week for week in weeks if week not in existing]


def process_backfill(
    weeks: list[WeekCoordinate],
    fetch_week: Callable[[WeekCoordinate], object],
    pause: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillResult:
    """Fetch the given weeks one after another.

    A failing week is recorded and the remaining weeks are still processed.

    Args:
        weeks: Weeks to fetch, in order
        fetch_week: Called once per week
        pause: Seconds to wait between weeks
        sleep: Function used to pause

    Returns:
        BackfillResult listing successful and failed weeks
    """
    result = BackfillResult()

    for index, week in enumerate(weeks, start=1):
        logger.info(f"[{index}/{len(weeks)}] Fetching {week}...")
        try:
            fetch_week(week)
            result.successful.append(week)
        except Exception as e:
            logger.error(f"Failed to fetch {week}: {e}")
            result.failed.append((week, str(e)))

        if index < len(weeks):
            sleep(pause)

    return result
