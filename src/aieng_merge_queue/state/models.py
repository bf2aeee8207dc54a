"""Queue document models and their JSON mapping."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..config import QUEUE_VERSION
from ..errors import StateCorruptError


class ProcessingStatus(str, Enum):
    """Status of the PR currently being processed."""

    VALIDATING = "validating"
    UPDATING_BRANCH = "updating_branch"
    MERGING = "merging"


class MergeResult(str, Enum):
    """Terminal outcome of processing one PR."""

    MERGED = "merged"
    FAILED = "failed"
    CONFLICT = "conflict"
    REMOVED = "removed"


def utc_now() -> str:
    """Return the current UTC time in ISO 8601 format."""
    return datetime.now(UTC).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class QueuedEntry:
    """A PR waiting in the queue.

    Attributes
    ----------
    pr_number : int
        PR number.
    enqueued_at : str
        ISO 8601 time the PR entered the queue.
    enqueued_by : str
        Login (or trigger) that queued the PR.
    head_sha : str
        Head SHA at enqueue time.
    priority : int
        Higher values are processed first.

    """

    pr_number: int
    enqueued_at: str
    enqueued_by: str = ""
    head_sha: str = ""
    priority: int = 0

    def sort_key(self) -> tuple[int, datetime]:
        """Order by priority descending, then enqueue time ascending."""
        return (-self.priority, parse_timestamp(self.enqueued_at))


def _parse_queued(entry: dict[str, Any]) -> QueuedEntry:
    queued = QueuedEntry(**entry)
    for name in ("pr_number", "priority"):
        value = getattr(queued, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"queue entry {name} must be an integer, got {value!r}")
    parse_timestamp(queued.enqueued_at)
    return queued


@dataclass
class CurrentEntry:
    """The PR being processed right now."""

    pr_number: int
    status: ProcessingStatus
    started_at: str
    updated_at: str


@dataclass(frozen=True)
class HistoryEntry:
    """Outcome of one processed PR; never modified once written."""

    pr_number: int
    result: MergeResult
    completed_at: str
    duration_seconds: float
    reason: str | None = None


@dataclass
class QueueStats:
    """Counters derived from history results."""

    total_processed: int = 0
    total_merged: int = 0
    total_failed: int = 0

    def record(self, result: MergeResult) -> None:
        """Count one completed PR."""
        self.total_processed += 1
        if result == MergeResult.MERGED:
            self.total_merged += 1
        elif result in (MergeResult.FAILED, MergeResult.CONFLICT):
            self.total_failed += 1


@dataclass
class QueueDocument:
    """Persistent queue state for one target repository."""

    version: str = QUEUE_VERSION
    updated_at: str = field(default_factory=utc_now)
    current: CurrentEntry | None = None
    queue: list[QueuedEntry] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    stats: QueueStats = field(default_factory=QueueStats)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        data = asdict(self)
        if self.current is not None:
            data["current"]["status"] = self.current.status.value
        for entry, raw in zip(self.history, data["history"]):
            raw["result"] = entry.result.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "QueueDocument":
        """Deserialize and check structural invariants.

        Parameters
        ----------
        data : Any
            Decoded JSON document.

        Returns
        -------
        QueueDocument
            The parsed document.

        Raises
        ------
        StateCorruptError
            If the document is not a valid queue document.

        """
        if not isinstance(data, dict):
            raise StateCorruptError("Invalid state: document must be an object")
        if not data.get("version") or not isinstance(data["version"], str):
            raise StateCorruptError("Invalid state: missing or invalid version")
        if not data.get("updated_at") or not isinstance(data["updated_at"], str):
            raise StateCorruptError("Invalid state: missing or invalid updated_at")
        if not isinstance(data.get("queue"), list):
            raise StateCorruptError("Invalid state: queue must be an array")
        if not isinstance(data.get("history"), list):
            raise StateCorruptError("Invalid state: history must be an array")
        if not isinstance(data.get("stats"), dict):
            raise StateCorruptError("Invalid state: missing or invalid stats")

        try:
            current = data.get("current")
            doc = cls(
                version=data["version"],
                updated_at=data["updated_at"],
                current=(
                    CurrentEntry(
                        pr_number=int(current["pr_number"]),
                        status=ProcessingStatus(current["status"]),
                        started_at=current["started_at"],
                        updated_at=current["updated_at"],
                    )
                    if current
                    else None
                ),
                queue=[_parse_queued(entry) for entry in data["queue"]],
                history=[
                    HistoryEntry(
                        pr_number=int(entry["pr_number"]),
                        result=MergeResult(entry["result"]),
                        completed_at=entry["completed_at"],
                        duration_seconds=float(entry.get("duration_seconds", 0)),
                        reason=entry.get("reason"),
                    )
                    for entry in data["history"]
                ],
                stats=QueueStats(**data["stats"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StateCorruptError(f"Invalid state: malformed entry ({e})") from e

        try:
            if doc.current is not None:
                parse_timestamp(doc.current.started_at)
                parse_timestamp(doc.current.updated_at)
        except (TypeError, ValueError) as e:
            raise StateCorruptError(f"Invalid state: malformed current entry ({e})") from e

        numbers = [entry.pr_number for entry in doc.queue]
        if len(numbers) != len(set(numbers)):
            raise StateCorruptError("Invalid state: duplicate PR in queue")
        return doc
