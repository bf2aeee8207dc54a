"""Auto-merger queue system for sequential PR processing."""

from .branch_updater import BranchUpdater
from .pr_processor import PRProcessor, ProcessingOutcome
from .queue_manager import EnqueueResult, ProcessResult, QueueManager
from .status_poller import StatusPoller
from .validator import PRValidator, ValidationResult, evaluate_reviews

__all__ = [
    "QueueManager",
    "PRProcessor",
    "PRValidator",
    "BranchUpdater",
    "StatusPoller",
    "EnqueueResult",
    "ProcessResult",
    "ProcessingOutcome",
    "ValidationResult",
    "evaluate_reviews",
]
