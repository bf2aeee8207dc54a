"""PR eligibility checks shared by enqueue and processing."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..config import QueueConfig
from ..github import CheckStatus, GitHubClient, Review
from ..utils.logging import log_debug, log_info

# Review states that say something about merge readiness. COMMENTED and
# PENDING reviews never supersede an earlier approval or rejection.
_DECISIVE_REVIEW_STATES = {"APPROVED", "CHANGES_REQUESTED", "DISMISSED"}

_FAILED_CHECK_STATES = {"failure", "cancelled"}
_PASSING_CHECK_STATES = {"success", "neutral", "skipped"}


@dataclass
class ValidationResult:
    """Outcome of a validation.

    Attributes
    ----------
    valid : bool
        Whether all conditions passed.
    reason : str or None
        Why validation failed.
    checks : dict[str, bool]
        Per-condition results computed so far; ``up_to_date`` is set when
        validation passes.
    head_sha : str or None
        Head SHA the checks were evaluated against.

    """

    valid: bool
    reason: str | None = None
    checks: dict[str, bool] = field(default_factory=dict)
    head_sha: str | None = None


def evaluate_reviews(reviews: Iterable[Review]) -> tuple[int, bool]:
    """Reduce a review timeline to the latest decision per reviewer.

    Parameters
    ----------
    reviews : Iterable[Review]
        Reviews in submission order (oldest first).

    Returns
    -------
    tuple[int, bool]
        ``(approvals, changes_requested)`` counting only each reviewer's most
        recent approving, rejecting or dismissed review.

    """
    latest: dict[str, str] = {}
    for review in reversed(list(reviews)):
        if review.state not in _DECISIVE_REVIEW_STATES or not review.reviewer:
            continue
        latest.setdefault(review.reviewer, review.state)

    approvals = sum(1 for state in latest.values() if state == "APPROVED")
    changes_requested = any(state == "CHANGES_REQUESTED" for state in latest.values())
    return approvals, changes_requested


def summarize_checks(
    checks: list[CheckStatus], ignore: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Split required checks into failed and pending names.

    Parameters
    ----------
    checks : list[CheckStatus]
        Checks reported for a commit.
    ignore : Iterable[str]
        Check names that are not required.

    Returns
    -------
    tuple[list[str], list[str]]
        ``(failed, pending)`` check names.

    """
    ignored = set(ignore)
    required = [check for check in checks if check.name not in ignored]
    failed = [c.name for c in required if c.status in _FAILED_CHECK_STATES]
    pending = [
        c.name
        for c in required
        if c.status not in _FAILED_CHECK_STATES and c.status not in _PASSING_CHECK_STATES
    ]
    return failed, pending


class PRValidator:
    """Check whether a PR may be merged, against point-in-time host data.

    Parameters
    ----------
    api : GitHubClient
        Client for the target repository.
    config : QueueConfig
        Queue configuration.

    """

    def __init__(self, api: GitHubClient, config: QueueConfig):
        self.api = api
        self.config = config

    def validate(self, pr_number: int) -> ValidationResult:
        """Validate a PR against all merge requirements.

        Conditions are evaluated in order and the first failure is reported:
        open and not draft, enough approvals, no blocking label, no
        outstanding change request, green required checks. Passing
        validations report whether the branch is up to date with trunk.

        Parameters
        ----------
        pr_number : int
            PR to validate.

        Returns
        -------
        ValidationResult
            Result with a human-readable reason on failure.

        """
        log_info(f"Validating PR #{pr_number}")
        pr = self.api.get_pull_request(pr_number)
        checks: dict[str, bool] = {}

        def fail(reason: str) -> ValidationResult:
            log_info(f"  PR #{pr_number} not eligible: {reason}")
            return ValidationResult(
                valid=False, reason=reason, checks=checks, head_sha=pr.head_sha
            )

        checks["open"] = pr.is_open
        if not pr.is_open:
            return fail(f"PR is {pr.state}")
        checks["not_draft"] = not pr.draft
        if pr.draft and not self.config.allow_draft:
            return fail("PR is a draft")

        approvals, changes_requested = evaluate_reviews(self.api.get_reviews(pr_number))
        checks["approvals"] = approvals >= self.config.required_approvals
        if not checks["approvals"]:
            return fail(
                f"PR has {approvals} approval(s), "
                f"{self.config.required_approvals} required"
            )

        blocking = [label for label in pr.labels if label in self.config.block_labels]
        checks["no_blocking_labels"] = not blocking
        if blocking:
            return fail(f"PR has blocking label(s): {', '.join(blocking)}")

        checks["no_changes_requested"] = not changes_requested
        if changes_requested:
            return fail("Changes have been requested")

        status = self.check_status_checks(pr.head_sha)
        checks["status_checks"] = status.valid
        if not status.valid:
            return fail(status.reason or "Status checks are not passing")

        checks["up_to_date"] = not self.is_behind(pr_number)
        log_info(
            f"  PR #{pr_number} is eligible "
            f"({'up to date' if checks['up_to_date'] else 'behind base branch'})"
        )
        return ValidationResult(valid=True, checks=checks, head_sha=pr.head_sha)

    def check_status_checks(self, sha: str) -> ValidationResult:
        """Check that every required check on ``sha`` has passed.

        Pending checks count as passing only when ``allow_pending_checks``
        is set.
        """
        failed, pending = summarize_checks(
            self.api.get_commit_status(sha), self.config.ignore_checks
        )
        log_debug(f"Checks on {sha[:7]}: failed={failed} pending={pending}")
        if failed:
            return ValidationResult(
                valid=False, reason=f"Failed checks: {', '.join(failed)}"
            )
        if pending and not self.config.allow_pending_checks:
            return ValidationResult(
                valid=False, reason=f"Pending checks: {', '.join(pending)}"
            )
        return ValidationResult(valid=True)

    def is_behind(self, pr_number: int) -> bool:
        """Check whether trunk has commits not reachable from the PR branch."""
        return self.api.is_branch_behind(pr_number)
