"""In-memory queue mutations applied inside ``StateStore.atomic_update``."""

from ..config import HISTORY_LIMIT
from ..errors import InvalidTransitionError
from ..utils.logging import log_debug, log_info, log_warning
from .models import (
    CurrentEntry,
    HistoryEntry,
    ProcessingStatus,
    QueueDocument,
    QueuedEntry,
    utc_now,
)


class QueueLedger:
    """Queue operations over one document snapshot.

    The ledger never performs I/O. Callers obtain a fresh snapshot from the
    state store on every attempt and wrap the ledger call in
    ``atomic_update``::

        position = store.atomic_update(lambda doc: QueueLedger(doc).enqueue(entry))

    Parameters
    ----------
    document : QueueDocument
        Snapshot mutated in place.

    """

    def __init__(self, document: QueueDocument):
        self.document = document

    def _index(self, pr_number: int) -> int | None:
        for index, entry in enumerate(self.document.queue):
            if entry.pr_number == pr_number:
                return index
        return None

    def position(self, pr_number: int) -> int | None:
        """Return 0 if in flight, the 1-based queue position, or None."""
        current = self.document.current
        if current is not None and current.pr_number == pr_number:
            return 0
        index = self._index(pr_number)
        return None if index is None else index + 1

    def enqueue(self, entry: QueuedEntry) -> int:
        """Add a PR to the queue, keeping priority order.

        Parameters
        ----------
        entry : QueuedEntry
            PR to add.

        Returns
        -------
        int
            1-based position, or 0 if the PR is already being processed.
            Re-queuing a queued PR returns its existing position unchanged.

        """
        current = self.document.current
        if current is not None and current.pr_number == entry.pr_number:
            log_warning(f"PR #{entry.pr_number} is currently being processed")
            return 0

        existing = self._index(entry.pr_number)
        if existing is not None:
            log_warning(f"PR #{entry.pr_number} already in queue")
            return existing + 1

        self.document.queue.append(entry)
        # list.sort is stable, so equal keys keep insertion order
        self.document.queue.sort(key=QueuedEntry.sort_key)
        position = self._index(entry.pr_number) + 1
        log_info(f"PR #{entry.pr_number} added to queue at position {position}")
        return position

    def dequeue_head(self) -> QueuedEntry | None:
        """Return the next PR to process without removing it."""
        if not self.document.queue:
            return None
        return self.document.queue[0]

    def withdraw(self, pr_number: int) -> bool:
        """Remove a queued PR. The in-flight PR is not affected."""
        index = self._index(pr_number)
        if index is None:
            log_warning(f"PR #{pr_number} not found in queue")
            return False
        del self.document.queue[index]
        log_info(f"PR #{pr_number} removed from queue")
        return True

    def begin_processing(self, entry: QueuedEntry, now: str | None = None) -> CurrentEntry:
        """Mark a PR as in flight.

        Raises
        ------
        InvalidTransitionError
            If another PR is already in flight.

        """
        if self.document.current is not None:
            raise InvalidTransitionError(
                f"PR #{self.document.current.pr_number} is already being processed"
            )
        timestamp = now or utc_now()
        self.document.current = CurrentEntry(
            pr_number=entry.pr_number,
            status=ProcessingStatus.VALIDATING,
            started_at=timestamp,
            updated_at=timestamp,
        )
        log_debug(f"PR #{entry.pr_number} is now in flight")
        return self.document.current

    def resume_processing(self, now: str | None = None) -> CurrentEntry:
        """Restart the in-flight PR from validation after a crashed run.

        Raises
        ------
        InvalidTransitionError
            If no PR is in flight.

        """
        current = self._require_current("resume")
        current.status = ProcessingStatus.VALIDATING
        current.updated_at = now or utc_now()
        return current

    def advance_status(self, status: ProcessingStatus, now: str | None = None) -> None:
        """Record progress of the in-flight PR.

        Raises
        ------
        InvalidTransitionError
            If no PR is in flight.

        """
        current = self._require_current("update")
        current.status = ProcessingStatus(status)
        current.updated_at = now or utc_now()

    def complete(self, history_entry: HistoryEntry) -> None:
        """Finish the in-flight PR and record its outcome.

        Removes its queue entry if still present, prepends the history entry
        (keeping the most recent ``HISTORY_LIMIT``), updates stats and clears
        the in-flight slot. Nothing is modified if the check fails.

        Raises
        ------
        InvalidTransitionError
            If no PR is in flight, or ``history_entry`` is for another PR.

        """
        current = self._require_current("complete")
        if current.pr_number != history_entry.pr_number:
            raise InvalidTransitionError(
                f"Cannot complete PR #{history_entry.pr_number}: "
                f"PR #{current.pr_number} is in flight"
            )

        self.document.queue = [
            entry for entry in self.document.queue if entry.pr_number != current.pr_number
        ]
        self.document.history.insert(0, history_entry)
        del self.document.history[HISTORY_LIMIT:]
        self.document.stats.record(history_entry.result)
        self.document.current = None
        log_info(
            f"PR #{history_entry.pr_number} completed: {history_entry.result.value}"
        )

    def _require_current(self, action: str) -> CurrentEntry:
        if self.document.current is None:
            raise InvalidTransitionError(f"No current PR to {action}")
        return self.document.current
