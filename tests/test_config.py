"""Tests for queue configuration."""

import pytest

from aieng_merge_queue.config import (
    QUEUE_WORKFLOW_CHECKS,
    QueueConfig,
    RepositoryInfo,
    parse_repository,
    split_csv,
)


class TestParseRepository:
    """Tests for parse_repository."""

    def test_valid(self):
        """Test owner/repo strings are split."""
        repo = parse_repository("VectorInstitute/aieng-bot")

        assert repo == RepositoryInfo(owner="VectorInstitute", repo="aieng-bot")
        assert str(repo) == "VectorInstitute/aieng-bot"

    @pytest.mark.parametrize("value", ["aieng-bot", "a/b/c", "/repo", "owner/", ""])
    def test_invalid(self, value):
        """Test anything but exactly one slash with both parts is rejected."""
        with pytest.raises(ValueError, match="Invalid repository format"):
            parse_repository(value)


def test_split_csv():
    """Test comma-separated values are trimmed and blanks dropped."""
    assert split_csv(" wip, do-not-merge ,,") == ["wip", "do-not-merge"]
    assert split_csv(None) == []


class TestQueueConfig:
    """Tests for QueueConfig defaults and validation."""

    def test_defaults(self):
        """Test defaults match the documented labels and limits."""
        config = QueueConfig()

        assert config.merge_method == "squash"
        assert config.block_labels == ["do-not-merge", "wip"]
        assert config.queue_labels == ["queued-for-merge", "merge-processing", "merge-updating"]
        assert config.stale_after_minutes == 60

    def test_queue_workflows_always_ignored(self):
        """Test the queue's own checks are appended to ignore_checks."""
        config = QueueConfig(ignore_checks=["codecov/patch", "Process Merge Queue"])

        assert config.ignore_checks[0] == "codecov/patch"
        for name in QUEUE_WORKFLOW_CHECKS:
            assert config.ignore_checks.count(name) == 1

    def test_caller_ignore_list_is_not_modified(self):
        """Test a list shared between configs keeps only the caller's checks."""
        shared = ["codecov/patch"]

        first = QueueConfig(ignore_checks=shared)
        second = QueueConfig(ignore_checks=shared)

        assert shared == ["codecov/patch"]
        assert first.ignore_checks == second.ignore_checks
        assert first.ignore_checks is not shared

    def test_stale_after_follows_timeout(self):
        """Test the staleness window defaults to twice the update timeout."""
        assert QueueConfig(update_timeout_minutes=10).stale_after_minutes == 20
        assert QueueConfig(stale_after_minutes=5).stale_after_minutes == 5

    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"merge_method": "fast-forward"}, "Invalid merge method"),
            ({"update_timeout_minutes": 0}, "update_timeout_minutes"),
            ({"max_update_retries": 0}, "max_update_retries"),
            ({"required_approvals": -1}, "required_approvals"),
            ({"stale_after_minutes": 0}, "stale_after_minutes"),
        ],
    )
    def test_invalid_values(self, kwargs, match):
        """Test out-of-range values raise ValueError."""
        with pytest.raises(ValueError, match=match):
            QueueConfig(**kwargs)
