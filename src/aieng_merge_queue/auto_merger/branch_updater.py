"""Bring PR branches up to date with trunk."""

from ..github import GitHubClient, UpdateResult
from ..utils.logging import log_info, log_warning
from .status_poller import StatusPoller
from .validator import PRValidator


class BranchUpdater:
    """Merge trunk into a stale PR branch and wait for its checks.

    Parameters
    ----------
    api : GitHubClient
        Client for the target repository.
    validator : PRValidator
        Used for the staleness check.
    poller : StatusPoller
        Waits for checks on the updated head.

    """

    def __init__(self, api: GitHubClient, validator: PRValidator, poller: StatusPoller):
        self.api = api
        self.validator = validator
        self.poller = poller

    def update_if_behind(self, pr_number: int) -> UpdateResult:
        """Update the PR branch if trunk has moved ahead of it.

        Parameters
        ----------
        pr_number : int
            PR to update.

        Returns
        -------
        UpdateResult
            ``success`` if the branch was already current, or was updated and
            its checks passed. ``conflict`` if trunk could not be merged in;
            conflicts are not retried.

        Raises
        ------
        CheckTimeoutError
            If checks do not finish within the configured timeout.

        """
        if not self.validator.is_behind(pr_number):
            log_info(f"  PR #{pr_number} branch is up to date")
            return UpdateResult(success=True)

        log_info(f"  PR #{pr_number} branch is behind, updating...")
        update = self.api.update_branch(pr_number)
        if not update.success:
            log_warning(f"  Branch update failed for PR #{pr_number}: {update.error}")
            return update

        if not self.poller.wait_for_tests(pr_number, update.sha):
            return UpdateResult(
                success=False, sha=update.sha, error="Tests failed after branch update"
            )

        log_info(f"  Tests passed after branch update for PR #{pr_number}")
        return UpdateResult(success=True, sha=update.sha)
