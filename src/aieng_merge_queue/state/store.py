"""Conditional-write persistence for the queue document.

Every mutation goes through :meth:`StateStore.atomic_update`, which re-reads
the document on each attempt. Retrying only the write would apply a mutation
computed from stale data (e.g. a "PR already queued?" decision), so the whole
read-mutate-write cycle is repeated on conflict.
"""

import json
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

from ..config import RepositoryInfo
from ..errors import ConcurrencyConflictError, ConcurrencyExhaustedError
from ..utils.logging import log_debug, log_info, log_warning
from .models import QueueDocument, utc_now

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY_SECONDS = 1.0


def state_file_name(repo: RepositoryInfo) -> str:
    """Return the document name for a target repository."""
    return f"{repo.owner}-{repo.repo}-queue.json"


class StateStore(ABC):
    """Queue document storage with optimistic concurrency control.

    Subclasses implement :meth:`_load` and :meth:`_store` against a backend
    that supports compare-and-swap on a version token.

    Parameters
    ----------
    target_repo : RepositoryInfo
        Repository whose queue is stored.
    max_retries : int, optional
        Extra attempts ``atomic_update`` makes after a conflict (default=5).
    base_delay : float, optional
        Backoff base in seconds (default=1.0).
    sleep : Callable[[float], None], optional
        Sleep function, replaceable in tests.

    """

    def __init__(
        self,
        target_repo: RepositoryInfo,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.target_repo = target_repo
        self.name = state_file_name(target_repo)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    @abstractmethod
    def _load(self) -> tuple[Any, str] | None:
        """Fetch the raw document and its version token, or None if absent."""

    @abstractmethod
    def _store(self, data: dict[str, Any], expected_token: str | None) -> str:
        """Write ``data`` if the stored version still matches ``expected_token``.

        ``expected_token=None`` means the document must not exist yet.

        Raises
        ------
        ConcurrencyConflictError
            If the precondition does not hold.

        """

    def read_versioned(self) -> tuple[QueueDocument, str]:
        """Read the latest document with its version token.

        An absent document is created empty (bootstrap-on-read).

        Raises
        ------
        StateCorruptError
            If the stored document is structurally invalid.

        """
        loaded = self._load()
        if loaded is not None:
            data, token = loaded
            return QueueDocument.from_dict(data), token

        log_info(f"State {self.name} does not exist, creating empty state")
        document = QueueDocument()
        try:
            token = self.write(document, None)
        except ConcurrencyConflictError:
            # Another run bootstrapped it first
            loaded = self._load()
            if loaded is None:
                raise
            data, token = loaded
            return QueueDocument.from_dict(data), token
        return document, token

    def read(self) -> QueueDocument:
        """Read the latest document."""
        document, _ = self.read_versioned()
        return document

    def write(self, document: QueueDocument, expected_token: str | None) -> str:
        """Conditionally write the document.

        Parameters
        ----------
        document : QueueDocument
            Document to persist; ``updated_at`` is refreshed.
        expected_token : str or None
            Version token from the read this write is based on.

        Returns
        -------
        str
            The new version token.

        Raises
        ------
        ConcurrencyConflictError
            If another writer updated the document since it was read.

        """
        document.updated_at = utc_now()
        data = document.to_dict()
        # Round-trip through the parser so an invalid document is never stored
        QueueDocument.from_dict(json.loads(json.dumps(data)))
        token = self._store(data, expected_token)
        log_debug(f"Wrote {self.name} (version {token})")
        return token

    def atomic_update(
        self,
        mutate: Callable[[QueueDocument], T],
        max_retries: int | None = None,
    ) -> T:
        """Apply ``mutate`` to the latest document and persist it.

        Parameters
        ----------
        mutate : Callable[[QueueDocument], T]
            Mutates the document in place and returns a result. It may run
            several times and must not have side effects outside the document.
        max_retries : int or None, optional
            Overrides the store's retry budget.

        Returns
        -------
        T
            Result of ``mutate`` from the attempt whose write succeeded.

        Raises
        ------
        ConcurrencyExhaustedError
            If every attempt conflicted.

        """
        retries = self.max_retries if max_retries is None else max_retries
        attempts = retries + 1

        for attempt in range(attempts):
            document, token = self.read_versioned()
            result = mutate(document)
            try:
                self.write(document, token)
                return result
            except ConcurrencyConflictError:
                if attempt + 1 >= attempts:
                    break
                delay = self.base_delay * (2**attempt) + random.uniform(0, self.base_delay)
                log_warning(
                    f"State conflict on attempt {attempt + 1}/{attempts} for "
                    f"{self.name}, retrying in {delay:.1f}s"
                )
                self._sleep(delay)

        raise ConcurrencyExhaustedError(
            f"State update for {self.name} failed after {attempts} attempts",
            attempts=attempts,
        )
