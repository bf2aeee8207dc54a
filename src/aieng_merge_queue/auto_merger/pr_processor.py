"""Per-PR processing: validate, reconcile with trunk, merge."""

from collections.abc import Callable
from dataclasses import dataclass, field

from ..config import QueueConfig
from ..errors import HostAPIError, StateError
from ..github import GitHubClient
from ..state.models import MergeResult, ProcessingStatus
from ..utils.logging import get_console, log_error, log_info, log_success, log_warning
from .branch_updater import BranchUpdater
from .comments import ProcessingStep, build_summary
from .validator import PRValidator

StatusCallback = Callable[[ProcessingStatus], None]
OutcomeCallback = Callable[["ProcessingOutcome"], None]

_TITLES = {
    MergeResult.MERGED: "Merged Successfully",
    MergeResult.FAILED: "Removed from Queue",
    MergeResult.CONFLICT: "Merge Conflict",
    MergeResult.REMOVED: "Removed from Queue",
}


@dataclass
class ProcessingOutcome:
    """Terminal state reached for one PR.

    Attributes
    ----------
    result : MergeResult
        Terminal state.
    reason : str or None
        Why the PR was not merged.
    steps : list[ProcessingStep]
        Steps reported in the summary comment.
    merge_sha : str or None
        Merge commit SHA when merged.
    error : Exception or None
        Unexpected exception that ended processing, if any.

    """

    result: MergeResult
    reason: str | None = None
    steps: list[ProcessingStep] = field(default_factory=list)
    merge_sha: str | None = None
    error: Exception | None = None


class PRProcessor:
    """Drive one PR through ``validating → updating_branch* → merging``.

    Every path ends in exactly one of ``merged``, ``failed``, ``conflict`` or
    ``removed``. Unexpected exceptions map to ``failed``; state-store errors
    propagate, since they say nothing about the PR.

    Parameters
    ----------
    api : GitHubClient
        Client for the target repository.
    validator : PRValidator
        Eligibility checks.
    updater : BranchUpdater
        Trunk reconciliation.
    config : QueueConfig
        Queue configuration.

    """

    def __init__(
        self,
        api: GitHubClient,
        validator: PRValidator,
        updater: BranchUpdater,
        config: QueueConfig,
    ):
        self.api = api
        self.validator = validator
        self.updater = updater
        self.config = config

    def process(
        self,
        pr_number: int,
        on_status: StatusCallback | None = None,
        on_complete: OutcomeCallback | None = None,
    ) -> ProcessingOutcome:
        """Process a PR to a terminal state.

        Parameters
        ----------
        pr_number : int
            PR to process.
        on_status : StatusCallback or None, optional
            Called on every state transition, e.g. to persist progress.
        on_complete : OutcomeCallback or None, optional
            Called with the terminal outcome while the PR still carries the
            processing label, before result labels and the summary comment
            are applied.

        Returns
        -------
        ProcessingOutcome
            The terminal state and the steps taken.

        Raises
        ------
        StateError
            If persisting progress or the outcome fails. The PR is left
            unmarked.

        """
        report = on_status or (lambda status: None)
        steps: list[ProcessingStep] = []

        get_console().rule(f"Processing PR #{pr_number} in {self.api.repo}")

        try:
            outcome = self._run(pr_number, report, steps)
        except StateError:
            raise
        except Exception as e:
            log_error(f"Error processing PR #{pr_number}: {e}")
            steps.append(ProcessingStep("Error occurred", "failure", str(e)))
            outcome = ProcessingOutcome(
                result=MergeResult.FAILED, reason=str(e), steps=steps, error=e
            )

        if on_complete is not None:
            on_complete(outcome)
        self._finish(pr_number, outcome)
        return outcome

    def _run(
        self, pr_number: int, report: StatusCallback, steps: list[ProcessingStep]
    ) -> ProcessingOutcome:
        def done(result: MergeResult, reason: str | None = None) -> ProcessingOutcome:
            return ProcessingOutcome(result=result, reason=reason, steps=steps)

        def fail(label: str, reason: str) -> ProcessingOutcome:
            log_warning(f"  {label}: {reason}")
            steps.append(ProcessingStep(label, "failure", reason))
            return done(MergeResult.FAILED, reason)

        report(ProcessingStatus.VALIDATING)
        if not self._is_open(pr_number):
            return done(MergeResult.REMOVED, "PR is closed or no longer exists")

        self.api.add_labels(pr_number, [self.config.processing_label])
        self.api.remove_label(pr_number, self.config.queued_label)

        validation = self.validator.validate(pr_number)
        if not validation.valid:
            return fail(
                "Validation failed: checks no longer passing",
                validation.reason or "Unknown reason",
            )
        steps.append(ProcessingStep("Validation passed", "success"))

        # Trunk may advance while checks run on the updated branch, so
        # staleness is re-checked after every update, up to the retry budget.
        is_behind = not validation.checks.get("up_to_date", True)
        if not is_behind:
            steps.append(ProcessingStep("Branch already up to date", "success"))

        attempts = 0
        while is_behind and self.config.auto_update_branch:
            attempts += 1
            if attempts > self.config.max_update_retries:
                retries = self.config.max_update_retries
                return fail(
                    "Branch update retries exhausted",
                    f"Update retries exhausted ({retries}/{retries}): the base branch "
                    "kept advancing while waiting for CI. Please re-queue.",
                )
            if attempts > 1:
                log_info(
                    f"  Base branch advanced during CI wait, re-updating "
                    f"(attempt {attempts}/{self.config.max_update_retries})"
                )
                steps.append(
                    ProcessingStep(
                        f"Branch went stale, re-updating (attempt {attempts}/"
                        f"{self.config.max_update_retries})",
                        "success",
                    )
                )

            report(ProcessingStatus.UPDATING_BRANCH)
            self.api.add_labels(pr_number, [self.config.updating_label])
            try:
                update = self.updater.update_if_behind(pr_number)
            finally:
                self.api.remove_label(pr_number, self.config.updating_label)

            if update.conflict:
                steps.append(
                    ProcessingStep(
                        "Branch update failed: merge conflict detected",
                        "failure",
                        "Please resolve conflicts and add the ready label again to re-queue.",
                    )
                )
                return done(MergeResult.CONFLICT, "Merge conflict with base branch")
            if not update.success:
                if not self._is_open(pr_number):
                    return done(MergeResult.REMOVED, "PR was closed during processing")
                return fail(
                    "Tests failed after branch update", update.error or "Unknown error"
                )

            steps.append(ProcessingStep("Branch updated with latest base", "success"))
            steps.append(ProcessingStep("Tests passed after update", "success"))
            is_behind = self.validator.is_behind(pr_number)

        if is_behind:
            return fail(
                "Branch is behind base branch",
                "Auto-update is disabled. Please update the branch manually and re-queue.",
            )

        report(ProcessingStatus.MERGING)
        # Closes the window between the last update and the merge call.
        if self.validator.is_behind(pr_number):
            return fail(
                "Branch became stale before merge: base branch advanced",
                "The base branch advanced after validation. Please re-queue.",
            )

        pr = self.api.get_pull_request(pr_number)
        if not pr.is_open:
            return done(MergeResult.REMOVED, "PR was closed during processing")
        if pr.mergeable is False:
            steps.append(ProcessingStep("PR has merge conflicts", "failure"))
            return done(MergeResult.CONFLICT, "PR has merge conflicts")

        log_info(f"  Merging PR #{pr_number} ({self.config.merge_method})")
        sha = self.api.merge_pull_request(
            pr_number,
            self.config.merge_method,
            commit_message=f"Merged via merge queue\n\nCo-authored-by: {pr.author or 'unknown'}",
        )
        log_success(f"  PR #{pr_number} merged ({sha[:7]})")
        if self.config.delete_branch_after_merge and pr.head_ref:
            self.api.delete_branch(pr.head_ref)

        steps.append(ProcessingStep("Merged successfully", "success"))
        outcome = done(MergeResult.MERGED)
        outcome.merge_sha = sha
        return outcome

    def _is_open(self, pr_number: int) -> bool:
        try:
            pr = self.api.get_pull_request(pr_number)
        except HostAPIError as e:
            if e.status_code == 404:
                log_warning(f"  PR #{pr_number} not found")
                return False
            raise
        if not pr.is_open:
            log_warning(f"  PR #{pr_number} is no longer open ({pr.state})")
        return pr.is_open

    def _finish(self, pr_number: int, outcome: ProcessingOutcome) -> None:
        """Apply result labels and post the summary comment.

        Failures here are logged only: the outcome is already decided and
        must still be recorded.
        """
        cfg = self.config
        try:
            if outcome.result == MergeResult.FAILED:
                self.api.add_labels(pr_number, [cfg.failed_label])
            elif outcome.result == MergeResult.CONFLICT:
                self.api.add_labels(pr_number, [cfg.conflict_label])
            for label in (cfg.processing_label, cfg.queued_label, cfg.queue_label):
                self.api.remove_label(pr_number, label)

            if outcome.result != MergeResult.REMOVED:
                title = "Error" if outcome.error else _TITLES[outcome.result]
                self.api.add_comment(pr_number, build_summary(title, outcome.steps))
        except HostAPIError as e:
            log_error(f"Failed to update labels/comment on PR #{pr_number}: {e}")
