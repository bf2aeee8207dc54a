"""Queue document stored as a JSON file on a branch of the queue's own repo."""

import json
from typing import Any

from ..config import STATE_BRANCH, RepositoryInfo
from ..errors import ConcurrencyConflictError, HostAPIError, StateCorruptError
from ..github import GitHubClient
from .store import StateStore


class GitHubContentsStateStore(StateStore):
    """Store the document through the GitHub contents API.

    The file's blob SHA is the version token: an update carrying a stale SHA is
    rejected with HTTP 409, and creating a file that already exists with 422.

    Parameters
    ----------
    client : GitHubClient
        Client scoped to the merge queue's own repository.
    target_repo : RepositoryInfo
        Repository whose queue is stored.
    branch : str, optional
        Branch holding state files (default="merge-queue-state").
    **kwargs
        Passed to :class:`StateStore`.

    """

    def __init__(
        self,
        client: GitHubClient,
        target_repo: RepositoryInfo,
        branch: str = STATE_BRANCH,
        **kwargs: Any,
    ):
        super().__init__(target_repo, **kwargs)
        self.client = client
        self.branch = branch
        self._branch_ready = False

    def _load(self) -> tuple[Any, str] | None:
        found = self.client.get_file(self.name, ref=self.branch)
        if found is None:
            return None
        content, sha = found
        try:
            return json.loads(content), sha
        except json.JSONDecodeError as e:
            raise StateCorruptError(f"State file {self.name} is not valid JSON: {e}") from e

    def _store(self, data: dict[str, Any], expected_token: str | None) -> str:
        if not self._branch_ready:
            self.client.ensure_branch(self.branch)
            self._branch_ready = True

        try:
            return self.client.put_file(
                self.name,
                json.dumps(data, indent=2),
                branch=self.branch,
                message=f"Update queue state for {self.target_repo}",
                sha=expected_token,
            )
        except HostAPIError as e:
            if e.status_code == 409 or (e.status_code == 422 and expected_token is None):
                raise ConcurrencyConflictError(
                    "State update conflict: another process modified the state concurrently"
                ) from e
            raise
