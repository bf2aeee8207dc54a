"""Shared fixtures: an in-memory state store and a fake GitHub host."""

import copy
import threading
from typing import Any

import pytest

from aieng_merge_queue.auto_merger import (
    BranchUpdater,
    PRProcessor,
    PRValidator,
    QueueManager,
    StatusPoller,
)
from aieng_merge_queue.config import QueueConfig, RepositoryInfo
from aieng_merge_queue.errors import ConcurrencyConflictError, HostAPIError
from aieng_merge_queue.github import CheckStatus, PullRequest, Review, UpdateResult
from aieng_merge_queue.state.store import StateStore

TARGET_REPO = RepositoryInfo(owner="VectorInstitute", repo="test-repo")


class InMemoryStateStore(StateStore):
    """Conditional-write store backed by a dict, safe to share across threads."""

    def __init__(self, data: dict[str, Any] | None = None, **kwargs: Any):
        kwargs.setdefault("sleep", lambda seconds: None)
        kwargs.setdefault("base_delay", 0.0)
        super().__init__(TARGET_REPO, **kwargs)
        self._lock = threading.Lock()
        self.data = copy.deepcopy(data)
        self.version = 0
        self.writes = 0

    def _load(self):
        with self._lock:
            if self.data is None:
                return None
            return copy.deepcopy(self.data), str(self.version)

    def _store(self, data, expected_token):
        with self._lock:
            actual = None if self.data is None else str(self.version)
            if actual != expected_token:
                raise ConcurrencyConflictError(
                    f"expected version {expected_token}, found {actual}"
                )
            self.data = copy.deepcopy(data)
            self.version += 1
            self.writes += 1
            return str(self.version)


class FakeClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _next(sequence: list, default: Any) -> Any:
    """Pop the next scripted value; the last one repeats."""
    if not sequence:
        return default
    if len(sequence) > 1:
        return sequence.pop(0)
    return sequence[0]


class FakeGitHub:
    """Stateful stand-in for ``GitHubClient`` covering the queue's host calls.

    Scripted sequences (``behind``, ``check_runs``, ``update_results``) are
    consumed one value per call, repeating the last value.
    """

    def __init__(self, repo: RepositoryInfo = TARGET_REPO):
        self.repo = repo
        self.prs: dict[int, PullRequest] = {}
        self.reviews: dict[int, list[Review]] = {}
        self.check_runs: dict[str, list[list[CheckStatus]]] = {}
        self.behind: dict[int, list[bool]] = {}
        self.update_results: dict[int, list[UpdateResult]] = {}
        self.comments: dict[int, list[str]] = {}
        self.merged: list[tuple[int, str]] = []
        self.deleted_branches: list[str] = []
        self.update_calls: list[int] = []
        self._update_counter = 0

    def add_pr(
        self,
        number: int,
        approvals: int = 1,
        labels: list[str] | None = None,
        checks: list[CheckStatus] | None = None,
        draft: bool = False,
        created_at: str | None = None,
    ) -> PullRequest:
        """Register an open PR with approvals and green checks by default."""
        pr = PullRequest(
            number=number,
            state="open",
            draft=draft,
            head_ref=f"feature-{number}",
            head_sha=f"sha-{number}",
            base_ref="main",
            mergeable=True,
            labels=list(labels or []),
            author="octocat",
            title=f"PR {number}",
            created_at=created_at or f"2025-01-01T00:00:{number % 60:02d}+00:00",
        )
        self.prs[number] = pr
        self.reviews[number] = [
            Review(reviewer=f"reviewer-{i}", state="APPROVED") for i in range(approvals)
        ]
        if checks is None:
            checks = [CheckStatus(name="tests", status="success", conclusion="success")]
        self.check_runs[pr.head_sha] = [checks]
        return pr

    def _pr(self, pr_number: int) -> PullRequest:
        if pr_number not in self.prs:
            raise HostAPIError(f"Fetching PR #{pr_number} failed: Not Found", 404)
        return self.prs[pr_number]

    def get_pull_request(self, pr_number: int) -> PullRequest:
        return copy.deepcopy(self._pr(pr_number))

    def list_pull_requests(self, label: str | None = None) -> list[PullRequest]:
        prs = [copy.deepcopy(pr) for pr in self.prs.values() if pr.is_open]
        if label is not None:
            prs = [pr for pr in prs if label in pr.labels]
        return sorted(prs, key=lambda pr: (pr.created_at, pr.number))

    def get_reviews(self, pr_number: int) -> list[Review]:
        return list(self.reviews.get(pr_number, []))

    def get_commit_status(self, ref: str) -> list[CheckStatus]:
        return list(_next(self.check_runs.get(ref, []), []))

    def is_branch_behind(self, pr_number: int) -> bool:
        return _next(self.behind.get(pr_number, []), False)

    def update_branch(self, pr_number: int) -> UpdateResult:
        self.update_calls.append(pr_number)
        scripted = self.update_results.get(pr_number)
        if scripted:
            return _next(scripted, None)
        pr = self._pr(pr_number)
        self._update_counter += 1
        new_sha = f"sha-{pr_number}-update-{self._update_counter}"
        # The updated head inherits the scripted checks of the previous head
        self.check_runs.setdefault(new_sha, self.check_runs.get(pr.head_sha, [[]]))
        pr.head_sha = new_sha
        return UpdateResult(success=True, sha=new_sha)

    def merge_pull_request(self, pr_number, method="squash", commit_title=None, commit_message=None):
        pr = self._pr(pr_number)
        pr.state = "closed"
        self.merged.append((pr_number, method))
        return f"merge-{pr_number}-0000000"

    def delete_branch(self, ref: str) -> None:
        self.deleted_branches.append(ref)

    def add_labels(self, pr_number: int, labels: list[str]) -> None:
        pr = self._pr(pr_number)
        for label in labels:
            if label not in pr.labels:
                pr.labels.append(label)

    def remove_label(self, pr_number: int, label: str) -> None:
        pr = self._pr(pr_number)
        if label in pr.labels:
            pr.labels.remove(label)

    def add_comment(self, pr_number: int, body: str) -> None:
        self.comments.setdefault(pr_number, []).append(body)

    def labels(self, pr_number: int) -> list[str]:
        """Return the current labels of a PR."""
        return list(self.prs[pr_number].labels)


def build_processor(
    api: FakeGitHub, config: QueueConfig, clock: FakeClock | None = None
) -> PRProcessor:
    """Wire a processor whose poller never really sleeps."""
    clock = clock or FakeClock()
    validator = PRValidator(api, config)
    poller = StatusPoller(api, config, clock=clock, sleep=clock.sleep)
    return PRProcessor(api, validator, BranchUpdater(api, validator, poller), config)


@pytest.fixture
def config() -> QueueConfig:
    """Default queue configuration."""
    return QueueConfig()


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Fake host with no PRs."""
    return FakeGitHub()


@pytest.fixture
def store() -> InMemoryStateStore:
    """Empty in-memory state store."""
    return InMemoryStateStore()


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def manager(fake_github, store, config, clock) -> QueueManager:
    """Queue manager over the fake host and in-memory store."""
    return QueueManager(
        fake_github,
        store,
        config,
        processor=build_processor(fake_github, config, clock),
    )
