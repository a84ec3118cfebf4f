"""Tests for week-over-week comparison."""

import pytest

from git_weekly_snapshot.aggregator import create_empty, record_commit, record_pr, recompute_weekly_totals
from git_weekly_snapshot.comparator import compare_multiple_weeks, compare_weeks, percentage_change
from git_weekly_snapshot.models import NEW_CHANGE
from git_weekly_snapshot.weeks import WeekCoordinate


def _snapshot(coord, activity):
    """Build a snapshot from {username: (commits, prs)} on the week's Monday."""
    snapshot = create_empty(coord)
    for username, (commits, prs) in activity.items():
        for _ in range(commits):
            record_commit(snapshot, username, snapshot.week_start, lines_added=10)
        for _ in range(prs):
            record_pr(snapshot, username, snapshot.week_start)
    recompute_weekly_totals(snapshot)
    return snapshot


def test_percentage_change_classifications():
    no_data = percentage_change(0, 0)
    assert no_data.is_no_data
    assert no_data.change == 0

    new = percentage_change(5, 0)
    assert new.is_new
    assert new.change == NEW_CHANGE
    assert new.delta == 5

    inactive = percentage_change(0, 5)
    assert inactive.is_inactive
    assert inactive.change == -100
    assert inactive.delta == -5

    normal = percentage_change(150, 100)
    assert normal.change == 50.0
    assert normal.delta == 50
    assert normal.classification == "normal"


def test_percentage_change_rounds_to_one_decimal():
    assert percentage_change(1, 3).change == -66.7
    assert percentage_change(4, 3).change == 33.3


@pytest.mark.parametrize("current", range(4))
@pytest.mark.parametrize("previous", range(4))
def test_percentage_change_sets_at_most_one_flag(current, previous):
    result = percentage_change(current, previous)
    flags = [result.is_no_data, result.is_new, result.is_inactive]

    assert sum(flags) <= 1
    assert result.delta == current - previous
    if current > 0 and previous > 0:
        assert not any(flags)
        assert isinstance(result.change, float)


def test_compare_weeks(week):
    current = _snapshot(week, {"alice": (3, 1), "bob": (1, 0)})
    previous = _snapshot(WeekCoordinate(2025, 51), {"alice": (2, 1), "carol": (4, 2)})

    comparison = compare_weeks(current, previous)

    assert comparison.current_week == "2025-52"
    assert comparison.previous_week == "2025-51"
    assert comparison.has_previous_week
    assert comparison.team["commits"].current == 4
    assert comparison.team["commits"].previous == 6
    assert comparison.team["commits"].change == -33.3
    assert comparison.team["prs"].change == -66.7
    assert comparison.users["alice"]["commits"].change == 50.0
    assert comparison.users["bob"]["commits"].is_new
    assert comparison.users["bob"]["prs"].is_no_data
    # Only active in the previous week
    assert comparison.users["carol"]["commits"].is_inactive
    assert list(comparison.users) == ["alice", "bob", "carol"]


def test_compare_weeks_without_previous(week):
    current = _snapshot(week, {"alice": (2, 0)})

    comparison = compare_weeks(current, None)

    assert not comparison.has_previous_week
    assert comparison.team["commits"].is_new
    assert comparison.team["prs"].is_no_data
    assert comparison.users["alice"]["lines_added"].current == 20


def test_comparison_to_dict_uses_persisted_keys(week):
    comparison = compare_weeks(_snapshot(week, {"alice": (1, 0)}), None)

    data = comparison.to_dict()

    assert data["currentWeek"] == "2025-52"
    assert data["hasPreviousWeek"] is False
    assert data["comparisons"]["team"]["linesAdded"]["isNew"] is True
    assert data["comparisons"]["users"]["alice"]["commits"]["change"] == NEW_CHANGE


def test_compare_multiple_weeks_fills_gaps_with_zero():
    first = _snapshot(WeekCoordinate(2025, 51), {"alice": (1, 0)})
    second = _snapshot(WeekCoordinate(2025, 52), {"alice": (2, 0), "bob": (0, 1)})

    series = compare_multiple_weeks([first, second])

    assert series.weeks == ["2025-51", "2025-52"]
    assert [rollup.metrics.commits for rollup in series.team] == [1, 2]
    assert [rollup.metrics.prs for rollup in series.users["bob"]] == [0, 1]
    assert series.users["bob"][0].week == "2025-51"
    assert series.team[1].to_dict()["week"] == "2025-52"


def test_compare_multiple_weeks_empty():
    series = compare_multiple_weeks([])
    assert series.weeks == []
    assert series.team == []
