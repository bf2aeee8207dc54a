"""Queue document persistence and ledger."""

from .gcs_store import GCSStateStore
from .github_store import GitHubContentsStateStore
from .label_store import LabelStateStore
from .ledger import QueueLedger
from .models import (
    CurrentEntry,
    HistoryEntry,
    MergeResult,
    ProcessingStatus,
    QueueDocument,
    QueuedEntry,
    QueueStats,
)
from .store import StateStore, state_file_name

__all__ = [
    "StateStore",
    "GitHubContentsStateStore",
    "GCSStateStore",
    "LabelStateStore",
    "QueueLedger",
    "QueueDocument",
    "QueuedEntry",
    "CurrentEntry",
    "HistoryEntry",
    "QueueStats",
    "MergeResult",
    "ProcessingStatus",
    "state_file_name",
]
