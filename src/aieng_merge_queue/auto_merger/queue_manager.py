"""Queue manager for orchestrating PR queue processing."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from ..config import QueueConfig
from ..errors import CheckTimeoutError, InvalidTransitionError
from ..github import GitHubClient
from ..state.ledger import QueueLedger
from ..state.models import (
    CurrentEntry,
    HistoryEntry,
    MergeResult,
    ProcessingStatus,
    QueueDocument,
    QueuedEntry,
    parse_timestamp,
    utc_now,
)
from ..state.store import StateStore
from ..utils.logging import log_info, log_success, log_warning
from .branch_updater import BranchUpdater
from .comments import ADDED_TO_QUEUE, position_update, removed_checks_failure
from .pr_processor import PRProcessor, ProcessingOutcome
from .status_poller import StatusPoller
from .validator import PRValidator


@dataclass
class EnqueueResult:
    """Outcome of adding a PR to the queue."""

    valid: bool
    position: int | None = None
    reason: str | None = None


@dataclass
class ProcessResult:
    """Outcome of one processing run.

    Attributes
    ----------
    processed : bool
        Whether a PR was processed to a merge decision.
    pr_number : int or None
        PR that was picked up.
    result : str
        ``merged``, ``failed``, ``conflict``, ``removed`` or ``none``.
    reason : str or None
        Why the PR was not merged, or why nothing was processed.

    """

    processed: bool
    pr_number: int | None = None
    result: str = "none"
    reason: str | None = None


@dataclass
class _Claim:
    pr_number: int | None
    started_at: str = ""
    resumed: bool = False
    skip_reason: str | None = None


class QueueManager:
    """Manage one repository's queue.

    PRs are processed one at a time. Concurrent runs (manual, scheduled and
    push triggers) coordinate only through the state store's conditional
    writes.

    Parameters
    ----------
    api : GitHubClient
        Client for the target repository.
    store : StateStore
        Persistence for the queue document.
    config : QueueConfig
        Queue configuration.
    validator : PRValidator, optional
        Defaults to a validator over ``api``.
    processor : PRProcessor, optional
        Defaults to a processor wired from ``api`` and ``config``.

    Attributes
    ----------
    store : StateStore
        Persistence for the queue document.
    validator : PRValidator
        Eligibility checks used at enqueue time.
    processor : PRProcessor
        Per-PR state machine.

    """

    def __init__(
        self,
        api: GitHubClient,
        store: StateStore,
        config: QueueConfig,
        validator: PRValidator | None = None,
        processor: PRProcessor | None = None,
    ):
        self.api = api
        self.store = store
        self.config = config
        self.validator = validator or PRValidator(api, config)
        if processor is None:
            updater = BranchUpdater(api, self.validator, StatusPoller(api, config))
            processor = PRProcessor(api, self.validator, updater, config)
        self.processor = processor

    def enqueue(self, pr_number: int, enqueued_by: str = "", priority: int = 0) -> EnqueueResult:
        """Validate a PR and add it to the queue.

        Parameters
        ----------
        pr_number : int
            PR to queue.
        enqueued_by : str, optional
            Who requested the merge.
        priority : int, optional
            Higher values are processed first (default=0).

        Returns
        -------
        EnqueueResult
            Queue position (0 if already in flight), or the rejection reason.

        """
        validation = self.validator.validate(pr_number)
        if not validation.valid:
            reason = validation.reason or "Unknown reason"
            log_warning(f"PR #{pr_number} rejected: {reason}")
            self.api.add_labels(pr_number, [self.config.failed_label])
            self.api.remove_label(pr_number, self.config.queue_label)
            self.api.add_comment(pr_number, removed_checks_failure(reason))
            return EnqueueResult(valid=False, reason=reason)

        entry = QueuedEntry(
            pr_number=pr_number,
            enqueued_at=utc_now(),
            enqueued_by=enqueued_by,
            head_sha=validation.head_sha or "",
            priority=priority,
        )
        position = self.store.atomic_update(lambda doc: QueueLedger(doc).enqueue(entry))

        if position > 0:
            self.api.add_labels(pr_number, [self.config.queued_label])
        self.api.remove_label(pr_number, self.config.failed_label)
        self.api.remove_label(pr_number, self.config.conflict_label)
        self.api.add_comment(pr_number, f"{ADDED_TO_QUEUE}\n\n{position_update(position)}")

        log_success(f"PR #{pr_number} queued at position {position}")
        return EnqueueResult(valid=True, position=position)

    def withdraw(self, pr_number: int, reason: str = "Manual removal") -> bool:
        """Remove a waiting PR from the queue.

        Returns
        -------
        bool
            Whether the PR was queued.

        """
        removed = self.store.atomic_update(lambda doc: QueueLedger(doc).withdraw(pr_number))
        if removed:
            log_info(f"PR #{pr_number} removed from queue ({reason})")
            for label in self.config.queue_labels:
                self.api.remove_label(pr_number, label)
        return removed

    def status(self) -> QueueDocument:
        """Return the current queue document."""
        return self.store.read()

    def process_next(self) -> ProcessResult:
        """Process the PR at the head of the queue.

        A PR left in flight by a crashed run is resumed once it has been idle
        for ``stale_after_minutes``; before that it is assumed to belong to a
        live run and nothing is processed.

        Returns
        -------
        ProcessResult
            What happened in this run.

        Raises
        ------
        StateError
            If the queue document cannot be read or updated. The PR is not
            marked as failed.
        CheckTimeoutError
            If checks timed out; the PR is recorded as failed first.

        """
        claim = self.store.atomic_update(self._claim)
        if claim.pr_number is None:
            log_info(claim.skip_reason or "Nothing to process")
            return ProcessResult(processed=False, reason=claim.skip_reason)

        pr_number = claim.pr_number
        if claim.resumed:
            log_warning(f"Resuming PR #{pr_number} left in flight by a previous run")

        def on_status(status: ProcessingStatus) -> None:
            self.store.atomic_update(lambda doc: self._advance(doc, pr_number, status))

        def on_complete(outcome: ProcessingOutcome) -> None:
            self._record(claim, outcome.result, outcome.reason)

        outcome = self.processor.process(pr_number, on_status, on_complete)
        log_info(f"PR #{pr_number} processing complete: {outcome.result.value}")

        if isinstance(outcome.error, CheckTimeoutError):
            raise outcome.error

        return ProcessResult(
            processed=outcome.result != MergeResult.REMOVED,
            pr_number=pr_number,
            result=outcome.result.value,
            reason=outcome.reason,
        )

    def _is_abandoned(self, current: CurrentEntry) -> bool:
        idle_limit = timedelta(minutes=self.config.stale_after_minutes)
        return datetime.now(UTC) - parse_timestamp(current.updated_at) > idle_limit

    def _claim(self, document: QueueDocument) -> _Claim:
        ledger = QueueLedger(document)
        current = document.current
        if current is not None:
            if not self._is_abandoned(current):
                return _Claim(
                    pr_number=None,
                    skip_reason=f"PR #{current.pr_number} is already being processed",
                )
            ledger.resume_processing()
            return _Claim(
                pr_number=current.pr_number, started_at=current.started_at, resumed=True
            )

        head = ledger.dequeue_head()
        if head is None:
            return _Claim(pr_number=None, skip_reason="Queue is empty, nothing to process")
        started = ledger.begin_processing(head)
        return _Claim(pr_number=head.pr_number, started_at=started.started_at)

    @staticmethod
    def _advance(document: QueueDocument, pr_number: int, status: ProcessingStatus) -> None:
        current = document.current
        if current is None or current.pr_number != pr_number:
            raise InvalidTransitionError(
                f"PR #{pr_number} is no longer the in-flight PR; another run took over"
            )
        QueueLedger(document).advance_status(status)

    def _record(self, claim: _Claim, result: MergeResult, reason: str | None) -> None:
        completed = datetime.now(UTC)
        duration = (completed - parse_timestamp(claim.started_at)).total_seconds()
        entry = HistoryEntry(
            pr_number=claim.pr_number,
            result=result,
            completed_at=completed.isoformat(),
            duration_seconds=round(max(duration, 0.0), 1),
            reason=reason,
        )
        self.store.atomic_update(lambda doc: QueueLedger(doc).complete(entry))
