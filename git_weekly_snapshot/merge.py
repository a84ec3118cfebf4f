"""Append-only merging of freshly fetched data into persisted snapshots."""

import copy
import logging
from typing import Iterable

from .aggregator import recompute_weekly_totals
from .models import UserWeekRecord, WeekSnapshot, utc_now_iso
from .weeks import all_dates_in_week

logger = logging.getLogger(__name__)


def merge(existing: WeekSnapshot, fresh: WeekSnapshot, now: str | None = None) -> WeekSnapshot:
    """Merge a freshly aggregated snapshot into a previously persisted one.

    Days already present in ``existing`` are never modified, even when
    ``fresh`` carries different values for them; only days that are absent
    are copied over. Re-running ingestion for a week therefore only fills
    gaps. To correct a recorded day, delete it from the stored snapshot
    before re-running.

    Args:
        existing: Snapshot loaded from the store
        fresh: Snapshot built from the current run
        now: Timestamp to stamp as ``generated_at`` (defaults to now, UTC)

    Returns:
        A new snapshot; neither input is modified

    Raises:
        ValueError: If the snapshots belong to different weeks
    """
    if existing.week != fresh.week:
        raise ValueError(f"Cannot merge week {fresh.week} into week {existing.week}")

    merged = copy.deepcopy(existing)
    added_days = 0
    kept_days = 0

    for username, fresh_record in fresh.users.items():
        record = merged.users.setdefault(username, UserWeekRecord())
        for day, metrics in fresh_record.daily.items():
            if day in record.daily:
                kept_days += 1
                continue
            record.daily[day] = copy.deepcopy(metrics)
            added_days += 1

    for repository, fresh_daily in fresh.repository_daily.items():
        daily = merged.repository_daily.setdefault(repository, {})
        for day, metrics in fresh_daily.items():
            if day not in daily:
                daily[day] = copy.deepcopy(metrics)

    for repository in fresh.repositories:
        if repository not in merged.repositories:
            merged.repositories.append(repository)

    merged.fetched_dates = sorted(set(merged.fetched_dates or []) | set(fresh.fetched_dates or []))
    merged.generated_at = now or utc_now_iso()

    recompute_weekly_totals(merged)

    logger.debug(
        f"Merged week {merged.week}: {added_days} user-days added, "
        f"{kept_days} existing user-days kept"
    )
    return merged


def missing_dates(snapshot: WeekSnapshot, all_dates: Iterable[str]) -> list[str]:
    """Return the dates for which no user shows any recorded activity.

    A date counts as covered only if at least one user has commits, PRs or
    line changes on it. A day on which nobody was active is therefore
    reported as missing; see :func:`dates_to_fetch` for the variant that
    honours explicit fetch markers.
    """
    missing = []
    for day in all_dates:
        covered = any(
            record.daily[day].is_active()
            for record in snapshot.users.values()
            if day in record.daily
        )
        if not covered:
            missing.append(day)
    return missing


def dates_to_fetch(snapshot: WeekSnapshot, all_dates: Iterable[str]) -> list[str]:
    """Return the dates that still need to be fetched.

    When the snapshot marks fetched days, every day without the marker is
    returned, including days on which other repositories already showed
    activity; a repository that failed during an earlier run is therefore
    fetched again. Snapshots written before days were marked fall back to
    :func:`missing_dates`.
    """
    if snapshot.fetched_dates is None:
        return missing_dates(snapshot, all_dates)
    fetched = set(snapshot.fetched_dates)
    return [day for day in all_dates if day not in fetched]


def is_week_complete(snapshot: WeekSnapshot) -> bool:
    """Return True if every day of the snapshot's week has been covered."""
    return not dates_to_fetch(snapshot, all_dates_in_week(snapshot.coordinate))
