"""Tests for status check polling."""

import pytest
from conftest import FakeGitHub

from aieng_merge_queue.auto_merger import StatusPoller
from aieng_merge_queue.config import QueueConfig
from aieng_merge_queue.errors import CheckTimeoutError
from aieng_merge_queue.github import CheckStatus

PENDING = [CheckStatus(name="tests", status="pending")]
SUCCESS = [CheckStatus(name="tests", status="success", conclusion="success")]
FAILURE = [CheckStatus(name="tests", status="failure", conclusion="failure")]


@pytest.fixture
def api():
    """Fake host with one open PR."""
    api = FakeGitHub()
    api.add_pr(1)
    return api


def _poller(api, clock, timeout_minutes: int = 30) -> StatusPoller:
    config = QueueConfig(update_timeout_minutes=timeout_minutes)
    return StatusPoller(api, config, poll_interval=30, clock=clock, sleep=clock.sleep)


def test_waits_until_checks_pass(api, clock):
    """Test pending, pending, success resolves to True after two waits."""
    api.check_runs["sha-1"] = [PENDING, PENDING, SUCCESS]

    assert _poller(api, clock).wait_for_tests(1, "sha-1") is True
    assert clock.sleeps == [30, 30]


def test_failed_check_returns_false(api, clock):
    """Test a failing check ends the wait immediately."""
    api.check_runs["sha-1"] = [PENDING, FAILURE]

    assert _poller(api, clock).wait_for_tests(1, "sha-1") is False
    assert clock.sleeps == [30]


def test_closed_pr_returns_false(api, clock):
    """Test a PR closed while waiting stops polling."""
    api.prs[1].state = "closed"

    assert _poller(api, clock).wait_for_tests(1, "sha-1") is False
    assert clock.sleeps == []


def test_no_checks_passes_after_grace_polls(api, clock):
    """Test a commit without required checks is accepted after the grace period."""
    api.check_runs["sha-1"] = [[CheckStatus(name="Process Merge Queue", status="pending")]]

    assert _poller(api, clock).wait_for_tests(1, "sha-1") is True
    assert clock.sleeps == [30, 30]


def test_checks_appearing_late_are_awaited(api, clock):
    """Test checks registering after the first poll are still required."""
    api.check_runs["sha-1"] = [[], FAILURE]

    assert _poller(api, clock).wait_for_tests(1, "sha-1") is False


def test_timeout_raises(api, clock):
    """Test checks still running at the deadline raise CheckTimeoutError."""
    api.check_runs["sha-1"] = [PENDING]

    with pytest.raises(CheckTimeoutError) as exc_info:
        _poller(api, clock, timeout_minutes=1).wait_for_tests(1, "sha-1")

    assert exc_info.value.timeout_seconds == 60
    assert clock.sleeps == [30, 30]
    assert "1 minutes" in str(exc_info.value)
