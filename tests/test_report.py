"""Tests for Markdown report generation."""

from git_weekly_snapshot.aggregator import create_empty, record_commit, record_pr, recompute_weekly_totals
from git_weekly_snapshot.comparator import percentage_change
from git_weekly_snapshot.report import format_change, generate_markdown_report
from git_weekly_snapshot.weeks import WeekCoordinate


def _snapshot(coord, commits):
    snapshot = create_empty(coord, ["octo/api"])
    for _ in range(commits):
        record_commit(snapshot, "alice", snapshot.week_start, 10, 1, repository="octo/api")
    record_pr(snapshot, "bob", snapshot.week_start, repository="octo/api")
    recompute_weekly_totals(snapshot)
    return snapshot


def test_format_change():
    assert format_change(percentage_change(0, 0)) == "-"
    assert format_change(percentage_change(3, 0)) == "new"
    assert format_change(percentage_change(0, 3)) == "inactive"
    assert format_change(percentage_change(150, 100)) == "+50.0% (+50)"
    assert format_change(percentage_change(50, 100)) == "-50.0% (-50)"


def test_generate_markdown_report(tmp_path, week):
    current = _snapshot(week, commits=3)
    previous = _snapshot(WeekCoordinate(2025, 51), commits=2)
    output = tmp_path / "report.md"

    generate_markdown_report(current, previous, output)

    content = output.read_text()
    assert content.startswith("# Weekly Activity Report - 2025-52")
    assert "**Report Period:** 2025-12-22 - 2025-12-28" in content
    assert "| Commits | 3 | +50.0% (+1) |" in content
    assert "| 1 | alice | 3 | 0 | 0 | +30 / -3 | 6.33 | 6 / 0 / 0 / 0.33 |" in content
    assert "| 2 | bob |" in content
    assert "## Week-over-Week by Contributor" in content
    assert "| octo/api | 3 | 1 | 30 | 3 | 0 |" in content


def test_report_without_activity(tmp_path, week):
    output = tmp_path / "empty.md"

    generate_markdown_report(create_empty(week), None, output)

    content = output.read_text()
    assert "*No activity recorded for this week.*" in content
    assert "vs. previous" in content
