"""Error types for the merge queue.

PR-specific failures (validation, branch conflicts) end processing for one PR
and are recorded in the queue history. ``StateError`` and its subclasses are
document-level failures: they abort the run without marking the PR, so a later
run can retry from scratch.
"""


class MergeQueueError(Exception):
    """Base class for all merge queue errors."""


class ValidationFailure(MergeQueueError):
    """A PR does not meet the merge requirements.

    Parameters
    ----------
    reason : str
        Human-readable explanation posted back to the PR.

    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class HostAPIError(MergeQueueError):
    """A repository-host request failed.

    Parameters
    ----------
    message : str
        Description of the failed operation.
    status_code : int or None, optional
        HTTP status reported by the host, when known.

    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BranchConflictError(MergeQueueError):
    """Trunk cannot be merged into the PR branch without conflicts."""


class CheckTimeoutError(MergeQueueError):
    """Status checks did not finish within the configured timeout.

    Parameters
    ----------
    message : str
        Description of the timeout.
    timeout_seconds : float
        The timeout that elapsed.

    """

    def __init__(self, message: str, timeout_seconds: float):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class StateError(MergeQueueError):
    """Base class for queue document failures."""


class StateCorruptError(StateError):
    """The persisted queue document violates its structural invariants."""


class ConcurrencyConflictError(StateError):
    """A conditional write lost the race against another writer."""


class ConcurrencyExhaustedError(StateError):
    """``atomic_update`` kept conflicting until it ran out of attempts.

    Parameters
    ----------
    message : str
        Description of the failure.
    attempts : int
        Number of read-mutate-write cycles attempted.

    """

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class InvalidTransitionError(StateError):
    """A ledger operation was applied in a state that does not allow it."""
