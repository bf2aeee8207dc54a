"""Queue configuration and repository parsing."""

from dataclasses import dataclass, field
from typing import Literal

MergeMethod = Literal["merge", "squash", "rebase"]

VALID_MERGE_METHODS: tuple[str, ...] = ("merge", "squash", "rebase")

# Check names of the queue's own workflows; never required, or the queue
# would wait on itself.
QUEUE_WORKFLOW_CHECKS: tuple[str, ...] = (
    "Add PR to Merge Queue",
    "Remove PR from Merge Queue",
    "Process Merge Queue",
)

STATE_BRANCH = "merge-queue-state"
QUEUE_VERSION = "1.0"
HISTORY_LIMIT = 100
CHECK_POLL_INTERVAL_SECONDS = 30


@dataclass(frozen=True)
class RepositoryInfo:
    """A repository on the host.

    Parameters
    ----------
    owner : str
        Organization or user that owns the repository.
    repo : str
        Repository name.

    """

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        """Return the ``owner/repo`` form."""
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.full_name


def parse_repository(repo_string: str) -> RepositoryInfo:
    """Parse an ``owner/repo`` string.

    Parameters
    ----------
    repo_string : str
        Repository in ``owner/repo`` format.

    Returns
    -------
    RepositoryInfo
        Parsed repository.

    Raises
    ------
    ValueError
        If the string does not contain exactly one slash with non-empty parts.

    """
    parts = repo_string.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f'Invalid repository format: "{repo_string}". Expected "owner/repo".'
        )
    return RepositoryInfo(owner=parts[0], repo=parts[1])


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated option into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class QueueConfig:
    """Merge queue behaviour.

    Attributes
    ----------
    required_approvals : int
        Minimum number of approving reviewers.
    block_labels : list[str]
        Labels that keep a PR out of the queue.
    allow_draft : bool
        Whether draft PRs may be queued.
    allow_pending_checks : bool
        Whether pending status checks count as passing during validation.
    auto_update_branch : bool
        Whether stale PR branches are updated with trunk automatically.
    update_timeout_minutes : int
        How long to wait for checks after a branch update.
    max_update_retries : int
        How many branch updates to attempt while trunk keeps advancing.
    merge_method : str
        One of ``merge``, ``squash`` or ``rebase``.
    delete_branch_after_merge : bool
        Whether to delete the PR head branch after merging.
    ignore_checks : list[str]
        Check names excluded from the green-checks requirement. The queue's own
        workflow checks are always included.
    stale_after_minutes : int or None
        Age after which an in-flight PR is considered abandoned by a crashed
        run. Defaults to twice ``update_timeout_minutes``.

    """

    required_approvals: int = 1
    block_labels: list[str] = field(default_factory=lambda: ["do-not-merge", "wip"])
    allow_draft: bool = False
    allow_pending_checks: bool = False
    auto_update_branch: bool = True
    update_timeout_minutes: int = 30
    max_update_retries: int = 3
    merge_method: MergeMethod = "squash"
    delete_branch_after_merge: bool = True
    ignore_checks: list[str] = field(default_factory=list)
    stale_after_minutes: int | None = None

    queue_label: str = "ready"
    queued_label: str = "queued-for-merge"
    processing_label: str = "merge-processing"
    updating_label: str = "merge-updating"
    failed_label: str = "merge-queue-failed"
    conflict_label: str = "merge-queue-conflict"

    def __post_init__(self) -> None:
        """Validate numeric fields and the merge method.

        Raises
        ------
        ValueError
            If a value is out of range.

        """
        if self.merge_method not in VALID_MERGE_METHODS:
            raise ValueError(
                f'Invalid merge method: "{self.merge_method}". '
                f"Must be one of: {', '.join(VALID_MERGE_METHODS)}"
            )
        if self.required_approvals < 0:
            raise ValueError("required_approvals must not be negative")
        if self.update_timeout_minutes <= 0:
            raise ValueError("update_timeout_minutes must be a positive integer")
        if self.max_update_retries <= 0:
            raise ValueError("max_update_retries must be a positive integer")
        if self.stale_after_minutes is None:
            self.stale_after_minutes = self.update_timeout_minutes * 2
        elif self.stale_after_minutes <= 0:
            raise ValueError("stale_after_minutes must be a positive integer")

        self.ignore_checks = [
            *self.ignore_checks,
            *(name for name in QUEUE_WORKFLOW_CHECKS if name not in self.ignore_checks),
        ]

    @property
    def queue_labels(self) -> list[str]:
        """Labels that mark a PR as somewhere in the queue."""
        return [self.queued_label, self.processing_label, self.updating_label]
