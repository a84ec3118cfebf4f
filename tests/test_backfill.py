"""Tests for detecting and filling missing weeks."""

from datetime import date

from git_weekly_snapshot.aggregator import create_empty
from git_weekly_snapshot.backfill import detect_missing_weeks, process_backfill
from git_weekly_snapshot.weeks import WeekCoordinate


def test_detect_missing_weeks(store):
    stored = WeekCoordinate(2025, 50)
    store.save(stored, create_empty(stored))

    missing = detect_missing_weeks(store, date(2025, 12, 10), today=date(2025, 12, 24))

    assert [str(coord) for coord in missing] == ["2025-51", "2025-52"]


def test_detect_missing_weeks_across_year_boundary(store):
    missing = detect_missing_weeks(store, date(2020, 12, 21), today=date(2021, 1, 6))
    assert [str(coord) for coord in missing] == ["2020-52", "2020-53", "2021-01"]


def test_detect_missing_weeks_start_in_future(store):
    assert detect_missing_weeks(store, date(2026, 3, 2), today=date(2025, 12, 24)) == []


def test_process_backfill_continues_after_failure():
    weeks = [WeekCoordinate(2025, 50), WeekCoordinate(2025, 51), WeekCoordinate(2025, 52)]
    fetched = []
    sleeps = []

    def fetch_week(coord):
        fetched.append(coord)
        if coord.week == 51:
            raise RuntimeError("rate limited")

    result = process_backfill(weeks, fetch_week, pause=0.25, sleep=sleeps.append)

    assert fetched == weeks
    assert result.successful == [weeks[0], weeks[2]]
    assert result.failed == [(weeks[1], "rate limited")]
    assert sleeps == [0.25, 0.25]


def test_process_backfill_nothing_to_do():
    result = process_backfill([], lambda coord: None, sleep=lambda seconds: None)
    assert result.successful == []
    assert result.failed == []
