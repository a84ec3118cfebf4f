"""Markdown report generation."""

from datetime import datetime, timezone
from pathlib import Path

from .aggregator import week_statistics
from .comparator import WeekComparison, compare_weeks
from .models import ComparisonResult, WeekSnapshot
from .scoring import rank_contributors

METRIC_LABELS = {
    "commits": "Commits",
    "prs": "PRs",
    "lines_added": "Lines Added",
    "lines_deleted": "Lines Deleted",
}


def generate_markdown_report(
    snapshot: WeekSnapshot,
    previous: WeekSnapshot | None,
    output_path: str | Path,
) -> None:
    """Generate a weekly Markdown report and write it to a file.

    Args:
        snapshot: Snapshot of the reported week
        previous: Snapshot of the week before, if stored
        output_path: Path where the report should be written
    """
    output_path = Path(output_path)

    md_content = build_markdown(snapshot, compare_weeks(snapshot, previous))

    with open(output_path, "w") as f:
        f.write(md_content)


def format_change(result: ComparisonResult) -> str:
    """Render a comparison result as a short change label."""
    if result.is_no_data:
        return "-"
    if result.is_new:
        return "new"
    if result.is_inactive:
        return "inactive"
    sign = "+" if result.delta > 0 else ""
    return f"{sign}{result.change}% ({sign}{result.delta})"


def build_markdown(snapshot: WeekSnapshot, comparison: WeekComparison) -> str:
    """Build the complete Markdown content for the report.

    Args:
        snapshot: Snapshot of the reported week
        comparison: Comparison of that week with the previous one

    Returns:
        Complete Markdown document as a string
    """
    lines = []

    lines.append(f"# Weekly Activity Report - {snapshot.week}")
    lines.append("")
    lines.append(f"**Report Period:** {snapshot.week_start} - {snapshot.week_end}")
    lines.append("")
    lines.append(f"**Repositories:** {', '.join(snapshot.repositories) or 'none'}")
    lines.append("")
    lines.append("---")
    lines.append("")

    lines.append("## Team Summary")
    lines.append("")
    lines.extend(_build_summary_table(snapshot, comparison))
    lines.append("")

    lines.append("## Contributors")
    lines.append("")
    if snapshot.users:
        lines.extend(_build_leaderboard_table(snapshot))
    else:
        lines.append("*No activity recorded for this week.*")
    lines.append("")

    if comparison.users:
        lines.append("## Week-over-Week by Contributor")
        lines.append("")
        lines.extend(_build_user_comparison_table(comparison))
        lines.append("")

    lines.append("## Per-Repository Breakdown")
    lines.append("")
    lines.extend(_build_repository_table(snapshot))
    lines.append("")

    lines.append("---")
    lines.append("")
    lines.append(
        f"*Report generated on {datetime.now(timezone.utc).strftime('%B %d, %Y at %H:%M UTC')}*"
    )

    return "\n".join(lines)


def _build_summary_table(snapshot: WeekSnapshot, comparison: WeekComparison) -> list[str]:
    stats = week_statistics(snapshot)
    header = "vs. " + comparison.previous_week if comparison.previous_week else "vs. previous"

    lines = []
    lines.append(f"| Metric | Total | {header} |")
    lines.append("|--------|-------|---------|")
    for name, label in METRIC_LABELS.items():
        result = comparison.team[name]
        lines.append(f"| {label} | {result.current} | {format_change(result)} |")
    lines.append(f"| Reviews | {stats.total_reviews} | |")
    lines.append(f"| Review Comments | {stats.total_review_comments} | |")
    lines.append(f"| Discussion Comments | {stats.total_discussion_comments} | |")
    lines.append(f"| Active Contributors | {stats.active_users} | |")
    return lines


def _build_leaderboard_table(snapshot: WeekSnapshot) -> list[str]:
    """Build the contributor table, ordered by composite score."""
    lines = []
    lines.append(
        "| # | User | Commits | PRs | Reviews | Lines +/- | Score | Breakdown (commits/PRs/reviews/code) |"
    )
    lines.append("|---|------|---------|-----|---------|-----------|-------|------|")

    for rank, (username, breakdown) in enumerate(rank_contributors(snapshot), start=1):
        weekly = snapshot.users[username].weekly
        lines.append(
            f"| {rank} | {username} | {weekly.commits} | {weekly.prs} | "
            f"{weekly.reviews_given} | +{weekly.lines_added} / -{weekly.lines_deleted} | "
            f"{breakdown.total} | {breakdown.commits} / {breakdown.prs} / "
            f"{breakdown.reviews} / {breakdown.code} |"
        )
    return lines


def _build_user_comparison_table(comparison: WeekComparison) -> list[str]:
    lines = []
    lines.append("| User | " + " | ".join(METRIC_LABELS.values()) + " |")
    lines.append("|------|" + "|".join("---" for _ in METRIC_LABELS) + "|")
    for username, results in comparison.users.items():
        cells = [f"{results[name].current} ({format_change(results[name])})" for name in METRIC_LABELS]
        lines.append(f"| {username} | " + " | ".join(cells) + " |")
    return lines


def _build_repository_table(snapshot: WeekSnapshot) -> list[str]:
    if not snapshot.repository_metrics:
        return ["*No repositories tracked.*"]

    lines = []
    lines.append("| Repository | Commits | PRs | Lines Added | Lines Deleted | Reviews |")
    lines.append("|------------|---------|-----|-------------|---------------|---------|")
    for repository, metrics in sorted(snapshot.repository_metrics.items()):
        lines.append(
            f"| {repository} | {metrics.commits} | {metrics.prs} | {metrics.lines_added} | "
            f"{metrics.lines_deleted} | {metrics.reviews_given} |"
        )
    return lines
