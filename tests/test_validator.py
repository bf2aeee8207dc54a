"""Tests for PR validation."""

import pytest
from conftest import FakeGitHub

from aieng_merge_queue.auto_merger import PRValidator, evaluate_reviews
from aieng_merge_queue.auto_merger.validator import summarize_checks
from aieng_merge_queue.config import QueueConfig
from aieng_merge_queue.github import CheckStatus, Review


def _check(name: str, status: str) -> CheckStatus:
    return CheckStatus(name=name, status=status)


class TestEvaluateReviews:
    """Tests for reducing review timelines."""

    def test_latest_review_per_reviewer_wins(self):
        """Test a later change request overrides an earlier approval."""
        reviews = [
            Review(reviewer="alice", state="APPROVED"),
            Review(reviewer="alice", state="CHANGES_REQUESTED"),
        ]

        assert evaluate_reviews(reviews) == (0, True)

    def test_approval_after_change_request(self):
        """Test an approval clears the same reviewer's earlier change request."""
        reviews = [
            Review(reviewer="alice", state="CHANGES_REQUESTED"),
            Review(reviewer="alice", state="APPROVED"),
            Review(reviewer="bob", state="APPROVED"),
        ]

        assert evaluate_reviews(reviews) == (2, False)

    def test_comment_does_not_supersede_approval(self):
        """Test a plain comment keeps the reviewer's approval."""
        reviews = [
            Review(reviewer="alice", state="APPROVED"),
            Review(reviewer="alice", state="COMMENTED"),
        ]

        assert evaluate_reviews(reviews) == (1, False)

    def test_dismissal_revokes_approval(self):
        """Test a dismissed review no longer counts."""
        reviews = [
            Review(reviewer="alice", state="APPROVED"),
            Review(reviewer="alice", state="DISMISSED"),
        ]

        assert evaluate_reviews(reviews) == (0, False)


def test_summarize_checks_ignores_listed_names():
    """Test ignored checks are excluded and states are grouped."""
    checks = [
        _check("tests", "failure"),
        _check("lint", "pending"),
        _check("docs", "skipped"),
        _check("Process Merge Queue", "pending"),
        _check("flaky", "cancelled"),
    ]

    failed, pending = summarize_checks(checks, ["Process Merge Queue"])

    assert failed == ["tests", "flaky"]
    assert pending == ["lint"]


class TestPRValidator:
    """Tests for PRValidator.validate."""

    @pytest.fixture
    def api(self):
        """Fake host with one eligible PR."""
        api = FakeGitHub()
        api.add_pr(1)
        return api

    def test_eligible_pr(self, api, config):
        """Test an approved, green PR passes and reports being up to date."""
        result = PRValidator(api, config).validate(1)

        assert result.valid
        assert result.reason is None
        assert result.checks["up_to_date"] is True
        assert result.head_sha == "sha-1"

    def test_behind_pr_is_still_valid(self, api, config):
        """Test a stale branch is reported but not rejected."""
        api.behind[1] = [True]

        result = PRValidator(api, config).validate(1)

        assert result.valid
        assert result.checks["up_to_date"] is False

    def test_closed_pr(self, api, config):
        """Test closed PRs are rejected."""
        api.prs[1].state = "closed"

        result = PRValidator(api, config).validate(1)

        assert not result.valid
        assert result.reason == "PR is closed"

    def test_draft_pr(self, api):
        """Test drafts are rejected unless allowed."""
        api.prs[1].draft = True

        assert PRValidator(api, QueueConfig()).validate(1).reason == "PR is a draft"
        assert PRValidator(api, QueueConfig(allow_draft=True)).validate(1).valid

    def test_insufficient_approvals(self, api):
        """Test the approval count is compared against the requirement."""
        result = PRValidator(api, QueueConfig(required_approvals=2)).validate(1)

        assert not result.valid
        assert result.reason == "PR has 1 approval(s), 2 required"

    def test_blocking_label(self, api, config):
        """Test blocking labels keep the PR out."""
        api.prs[1].labels = ["ready", "wip"]

        result = PRValidator(api, config).validate(1)

        assert result.reason == "PR has blocking label(s): wip"

    def test_changes_requested(self, api, config):
        """Test an outstanding change request blocks the PR."""
        api.reviews[1].append(Review(reviewer="carol", state="CHANGES_REQUESTED"))

        result = PRValidator(api, config).validate(1)

        assert result.reason == "Changes have been requested"

    def test_failed_checks(self, api, config):
        """Test a failing required check blocks the PR."""
        api.check_runs["sha-1"] = [[_check("tests", "failure")]]

        result = PRValidator(api, config).validate(1)

        assert result.reason == "Failed checks: tests"
        assert result.checks["status_checks"] is False

    def test_pending_checks(self, api):
        """Test pending checks block unless explicitly allowed."""
        api.check_runs["sha-1"] = [[_check("tests", "pending")]]

        assert PRValidator(api, QueueConfig()).validate(1).reason == "Pending checks: tests"
        assert PRValidator(api, QueueConfig(allow_pending_checks=True)).validate(1).valid

    def test_queue_workflow_checks_are_ignored(self, api, config):
        """Test the queue's own workflow runs never block it."""
        api.check_runs["sha-1"] = [
            [_check("tests", "success"), _check("Process Merge Queue", "pending")]
        ]

        assert PRValidator(api, config).validate(1).valid

    def test_first_failure_is_reported(self, api):
        """Test conditions are evaluated in order."""
        api.prs[1].draft = True
        api.prs[1].labels = ["do-not-merge"]

        result = PRValidator(api, QueueConfig(required_approvals=3)).validate(1)

        assert result.reason == "PR is a draft"
        assert "approvals" not in result.checks
