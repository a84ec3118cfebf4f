"""Weighted contribution score used for ranking contributors."""

from typing import Any, Mapping

from .models import METRIC_KEYS, DailyMetrics, ScoreBreakdown, WeekSnapshot

COMMIT_WEIGHT = 2
PR_WEIGHT = 5
REVIEW_WEIGHT = 5
UNIQUE_PR_REVIEWED_WEIGHT = 4
REVIEW_COMMENT_WEIGHT = 1
CODE_WEIGHT = 0.01

# Max points from lines changed, so one huge diff cannot dominate a ranking
CODE_CAP = 300


def _as_metrics(metrics: DailyMetrics | Mapping[str, Any]) -> DailyMetrics:
    if isinstance(metrics, DailyMetrics):
        return metrics
    values = {}
    for attr, key in METRIC_KEYS.items():
        values[attr] = metrics.get(key, metrics.get(attr, 0)) or 0
    return DailyMetrics(**values)


def score(
    metrics: DailyMetrics | Mapping[str, Any], unique_prs_reviewed: int = 0
) -> ScoreBreakdown:
    """Compute the composite score of a set of metrics.

    The score has no absolute meaning; it is only useful to compare
    contributors with each other.

    Args:
        metrics: DailyMetrics, or a mapping using the persisted camelCase keys
        unique_prs_reviewed: Number of distinct PRs the contributor reviewed

    Returns:
        ScoreBreakdown with every component rounded to two decimals
    """
    if isinstance(metrics, Mapping) and "uniquePRsReviewed" in metrics and not unique_prs_reviewed:
        unique_prs_reviewed = metrics["uniquePRsReviewed"] or 0
    m = _as_metrics(metrics)

    commits = m.commits * COMMIT_WEIGHT
    prs = m.prs * PR_WEIGHT
    reviews = (
        m.reviews_given * REVIEW_WEIGHT
        + unique_prs_reviewed * UNIQUE_PR_REVIEWED_WEIGHT
        + m.review_comments_given * REVIEW_COMMENT_WEIGHT
    )
    code = min((m.lines_added + m.lines_deleted) * CODE_WEIGHT, CODE_CAP)

    return ScoreBreakdown(
        commits=round(commits, 2),
        prs=round(prs, 2),
        reviews=round(reviews, 2),
        code=round(code, 2),
        total=round(commits + prs + reviews + code, 2),
    )


def rank_contributors(snapshot: WeekSnapshot) -> list[tuple[str, ScoreBreakdown]]:
    """Rank a week's contributors by total score, highest first."""
    scored = [(username, score(record.weekly)) for username, record in snapshot.users.items()]
    return sorted(scored, key=lambda item: (-item[1].total, item[0]))
