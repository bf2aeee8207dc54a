"""Data models for repository-host responses."""

from dataclasses import dataclass, field
from typing import Any, Literal

CheckState = Literal["success", "failure", "cancelled", "neutral", "skipped", "pending"]


@dataclass
class PullRequest:
    """Point-in-time view of a pull request.

    Attributes
    ----------
    number : int
        PR number.
    state : str
        ``open`` or ``closed`` (merged PRs are closed).
    draft : bool
        Whether the PR is a draft.
    head_ref : str
        Source branch name.
    head_sha : str
        Head commit SHA.
    base_ref : str
        Target (trunk) branch name.
    mergeable : bool or None
        Host-computed mergeability; None while still being computed.
    labels : list[str]
        Label names on the PR.
    author : str
        Login of the PR author.
    title : str
        PR title.
    url : str
        HTML URL of the PR.
    created_at : str
        ISO 8601 creation timestamp.

    """

    number: int
    state: str
    draft: bool
    head_ref: str
    head_sha: str
    base_ref: str
    mergeable: bool | None = None
    labels: list[str] = field(default_factory=list)
    author: str = ""
    title: str = ""
    url: str = ""
    created_at: str = ""

    @property
    def is_open(self) -> bool:
        """Whether the PR is still open."""
        return self.state == "open"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PullRequest":
        """Build from a REST ``pulls`` payload."""
        return cls(
            number=int(data["number"]),
            state=data.get("state", "closed"),
            draft=bool(data.get("draft", False)),
            head_ref=data["head"]["ref"],
            head_sha=data["head"]["sha"],
            base_ref=data["base"]["ref"],
            mergeable=data.get("mergeable"),
            labels=[label["name"] for label in data.get("labels") or []],
            author=(data.get("user") or {}).get("login", ""),
            title=data.get("title", ""),
            url=data.get("html_url", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class Review:
    """A submitted PR review."""

    reviewer: str
    state: str
    submitted_at: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Review":
        """Build from a REST ``reviews`` payload."""
        return cls(
            reviewer=(data.get("user") or {}).get("login", ""),
            state=data.get("state", ""),
            submitted_at=data.get("submitted_at") or "",
        )


@dataclass
class CheckStatus:
    """One check run or commit status on a ref."""

    name: str
    status: CheckState
    conclusion: str | None = None


@dataclass
class UpdateResult:
    """Outcome of bringing a PR branch up to date with trunk.

    Attributes
    ----------
    success : bool
        True if the branch is up to date (and tests passed, when updated).
    conflict : bool
        True if trunk could not be merged cleanly.
    sha : str or None
        New head SHA after an update.
    error : str or None
        Failure description.

    """

    success: bool
    conflict: bool = False
    sha: str | None = None
    error: str | None = None


def map_check_run_status(conclusion: str | None, status: str) -> CheckState:
    """Map a check-run conclusion and run status to a ``CheckState``."""
    if conclusion:
        return {
            "success": "success",
            "failure": "failure",
            "cancelled": "cancelled",
            "neutral": "neutral",
            "skipped": "skipped",
            "timed_out": "failure",
            "action_required": "failure",
            "stale": "pending",
        }.get(conclusion, "pending")
    return "success" if status == "completed" else "pending"


def map_commit_status_state(state: str) -> CheckState:
    """Map a legacy commit-status state to a ``CheckState``."""
    return {
        "success": "success",
        "failure": "failure",
        "error": "failure",
        "pending": "pending",
    }.get(state, "pending")
