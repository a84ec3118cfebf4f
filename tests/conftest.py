"""Shared fixtures for git-weekly-snapshot tests."""

import httpx
import pytest

from git_weekly_snapshot.forge_client import ForgeClient, RateLimit, SoftFailure
from git_weekly_snapshot.storage import SnapshotStore
from git_weekly_snapshot.weeks import WeekCoordinate


class FakeClient(ForgeClient):
    """In-memory provider client keyed by "owner/name"."""

    def __init__(
        self,
        commits=None,
        details=None,
        pulls=None,
        reviews=None,
        review_comments=None,
        discussion_comments=None,
        open_pulls=None,
        failing=(),
        missing=(),
        error=None,
    ):
        super().__init__(token=None)
        self.commits = commits or {}
        self.details = details or {}
        self.pulls = pulls or {}
        self.reviews = reviews or {}
        self.review_comments = review_comments or {}
        self.discussion_comments = discussion_comments or {}
        self.open_pulls = open_pulls or {}
        self.failing = set(failing)
        self.error = error
        self.missing = set(missing)
        self.commit_calls = []

    def get_forge_name(self):
        return "Fake"

    def get_rate_limit(self):
        return RateLimit(remaining=5000, limit=5000, reset_epoch=0)

    def list_commits(self, owner, repo, since, until):
        name = f"{owner}/{repo}"
        self._check(name)
        if name in self.missing:
            self.soft_failures.append(SoftFailure(f"{name} commits", f"Resource not found: {name}"))
            return []
        self.commit_calls.append((name, since, until))
        return self.commits.get(name, [])

    def _check(self, name):
        if name in self.failing:
            raise self.error or httpx.ConnectError("connection refused")

    def list_pull_requests(self, owner, repo, since):
        return self.pulls.get(f"{owner}/{repo}", [])

    def list_open_pull_requests(self, owner, repo):
        self._check(f"{owner}/{repo}")
        return self.open_pulls.get(f"{owner}/{repo}", [])

    def get_commit_detail(self, owner, repo, sha):
        return self.details.get(sha)

    def list_reviews(self, owner, repo, pr_number):
        return self.reviews.get((f"{owner}/{repo}", pr_number), [])

    def list_review_comments(self, owner, repo, pr_number):
        return self.review_comments.get((f"{owner}/{repo}", pr_number), [])

    def list_discussion_comments(self, owner, repo, pr_number):
        return self.discussion_comments.get((f"{owner}/{repo}", pr_number), [])


def make_commit(
    sha, day, login=None, email="dev@example.com", name="Dev", parents=1, message="Update code"
):
    """Build a commit list item shaped like the GitHub API response."""
    return {
        "sha": sha,
        "parents": [{"sha": f"{sha}-parent-{i}"} for i in range(parents)],
        "commit": {
            "author": {"name": name, "email": email, "date": f"{day}T10:00:00Z"},
            "message": message,
        },
        "author": {"login": login} if login else None,
    }


@pytest.fixture
def fake_client():
    """Factory for FakeClient instances."""
    return FakeClient


@pytest.fixture
def week():
    """ISO week 52 of 2025 (2025-12-22 to 2025-12-28)."""
    return WeekCoordinate(2025, 52)


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path / "data", lock_timeout=0.3)


@pytest.fixture
def commit():
    """Factory for GitHub-shaped commit items."""
    return make_commit
