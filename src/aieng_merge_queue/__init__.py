"""AI Engineering Merge Queue - sequential, re-validated PR merging."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aieng-merge-queue")
except PackageNotFoundError:
    # Package not installed, use fallback
    __version__ = "0.1.0.dev"

from .auto_merger import PRProcessor, PRValidator, QueueManager
from .config import QueueConfig, RepositoryInfo, parse_repository
from .github import GitHubClient
from .state import (
    GCSStateStore,
    GitHubContentsStateStore,
    LabelStateStore,
    QueueDocument,
    QueueLedger,
    StateStore,
)

__all__ = [
    "QueueManager",
    "PRProcessor",
    "PRValidator",
    "QueueConfig",
    "RepositoryInfo",
    "parse_repository",
    "GitHubClient",
    "StateStore",
    "GitHubContentsStateStore",
    "GCSStateStore",
    "LabelStateStore",
    "QueueDocument",
    "QueueLedger",
    "__version__",
]
