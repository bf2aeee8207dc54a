"""Status poller for PR check monitoring."""

import time
from collections.abc import Callable

from ..config import CHECK_POLL_INTERVAL_SECONDS, QueueConfig
from ..errors import CheckTimeoutError
from ..github import GitHubClient
from ..utils.logging import log_error, log_info, log_success, log_warning
from .validator import summarize_checks

# Polls to wait for checks to register on a fresh commit before an empty
# check list is taken to mean "no required checks".
NO_CHECKS_GRACE_POLLS = 2


class StatusPoller:
    """Poll required checks on a commit until they settle.

    Parameters
    ----------
    api : GitHubClient
        Client for the target repository.
    config : QueueConfig
        Supplies the timeout and ignored check names.
    poll_interval : float, optional
        Seconds between polls (default=30).
    clock : Callable[[], float], optional
        Monotonic clock, replaceable in tests.
    sleep : Callable[[float], None], optional
        Sleep function, replaceable in tests.

    """

    def __init__(
        self,
        api: GitHubClient,
        config: QueueConfig,
        poll_interval: float = CHECK_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.config = config
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def wait_for_tests(self, pr_number: int, sha: str) -> bool:
        """Wait for required checks on ``sha`` to complete.

        Polls every ``poll_interval`` seconds up to ``update_timeout_minutes``.

        Parameters
        ----------
        pr_number : int
            PR the commit belongs to.
        sha : str
            Commit whose checks are awaited.

        Returns
        -------
        bool
            True if all required checks passed; False if any failed or was
            cancelled, or the PR was closed while waiting.

        Raises
        ------
        CheckTimeoutError
            If checks are still running when the timeout elapses. A hung
            pipeline cannot be told apart from a slow one, so the run stops
            instead of reporting a plain failure.

        """
        timeout_seconds = self.config.update_timeout_minutes * 60
        ignored = set(self.config.ignore_checks)
        start = self._clock()
        attempt = 0

        log_info(
            f"  ⏳ Waiting up to {self.config.update_timeout_minutes} minutes "
            f"for checks on {sha[:7]}..."
        )

        while self._clock() - start < timeout_seconds:
            attempt += 1

            pr = self.api.get_pull_request(pr_number)
            if not pr.is_open:
                log_warning(f"  PR #{pr_number} is no longer open ({pr.state})")
                return False

            checks = self.api.get_commit_status(sha)
            required = [check for check in checks if check.name not in ignored]
            failed, pending = summarize_checks(checks, ignored)

            if not required:
                if attempt > NO_CHECKS_GRACE_POLLS:
                    log_warning("  ⚠ No required checks reported, treating as passed")
                    return True
            elif failed:
                log_error(f"  Checks failed: {', '.join(failed)}")
                return False
            elif not pending:
                log_success("  Checks completed successfully")
                return True

            elapsed = int(self._clock() - start)
            log_info(
                f"  Check attempt {attempt}: {len(pending)} pending "
                f"({elapsed}s elapsed)"
            )
            self._sleep(self.poll_interval)

        log_error(
            f"  ⏱ Timeout: checks still running after "
            f"{self.config.update_timeout_minutes} minutes"
        )
        raise CheckTimeoutError(
            f"Tests did not complete within {self.config.update_timeout_minutes} minutes",
            timeout_seconds=timeout_seconds,
        )
