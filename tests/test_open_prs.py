"""Tests for collecting open pull requests."""

from datetime import datetime, timezone

import pytest

from git_weekly_snapshot.open_prs import (
    OpenPullRequest,
    fetch_open_pull_requests,
    format_age,
    open_pr_statistics,
)

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def _pull(number, created_at, login="alice", **fields):
    return {
        "number": number,
        "title": f"PR {number}",
        "user": {"login": login},
        "html_url": f"https://github.com/octo/api/pull/{number}",
        "created_at": created_at,
        **fields,
    }


def test_fetch_open_pull_requests_sorts_newest_first(fake_client):
    client = fake_client(
        open_pulls={
            "octo/api": [_pull(1, "2026-01-02T09:00:00Z")],
            "octo/web": [
                _pull(
                    5,
                    "2026-01-08T09:00:00Z",
                    login="bob",
                    draft=True,
                    labels=[{"name": "bug", "color": "d73a4a"}],
                    requested_reviewers=[{"login": "carol"}],
                )
            ],
        }
    )

    report = fetch_open_pull_requests(client, ["octo/api", "octo/web"])

    assert [(pr.repository, pr.number) for pr in report.pull_requests] == [
        ("octo/web", 5),
        ("octo/api", 1),
    ]
    newest = report.pull_requests[0]
    assert newest.is_draft
    assert newest.labels == ["bug"]
    assert newest.requested_reviewers == ["carol"]
    assert newest.updated_at == "2026-01-08T09:00:00Z"
    assert report.failures == []


def test_failed_repository_does_not_stop_collection(fake_client):
    client = fake_client(
        open_pulls={"octo/api": [_pull(1, "2026-01-02T09:00:00Z")]},
        failing=["octo/broken"],
    )

    report = fetch_open_pull_requests(client, ["octo/broken", "octo/api"])

    assert [pr.number for pr in report.pull_requests] == [1]
    assert [error.repository for error in report.failures] == ["octo/broken"]


def test_open_pr_statistics():
    prs = [
        OpenPullRequest.from_api("octo/api", _pull(1, "2026-01-09T12:00:00Z")),
        OpenPullRequest.from_api(
            "octo/api", _pull(2, "2026-01-06T12:00:00Z", login="bob", draft=True)
        ),
        OpenPullRequest.from_api(
            "octo/web",
            _pull(3, "2025-12-31T12:00:00Z", requested_reviewers=[{"login": "dave"}]),
        ),
    ]

    stats = open_pr_statistics(prs, now=NOW)

    assert stats.total == 3
    assert stats.unique_authors == 2
    assert stats.repositories == 2
    assert stats.oldest_age_days == 10
    # (1 + 4 + 10) / 3
    assert stats.average_age_days == 5
    assert stats.drafts == 1
    assert stats.awaiting_review == 1


def test_open_pr_statistics_without_pull_requests():
    assert open_pr_statistics([], now=NOW).total == 0


@pytest.mark.parametrize(
    "created_at, expected",
    [
        ("2026-01-10T11:30:00Z", "just now"),
        ("2026-01-10T11:00:00Z", "1 hour"),
        ("2026-01-10T05:00:00Z", "7 hours"),
        ("2026-01-09T12:00:00Z", "1 day"),
        ("2026-01-05T12:00:00Z", "5 days"),
        ("2026-01-01T12:00:00Z", "1 week"),
        ("2025-12-20T12:00:00Z", "3 weeks"),
        ("2025-11-25T12:00:00Z", "1 month"),
        ("2025-09-01T12:00:00Z", "4 months"),
    ],
)
def test_format_age(created_at, expected):
    assert format_age(created_at, now=NOW) == expected
