"""GitHub client for merge queue operations via the gh CLI."""

import base64
import json
import os
import re
import subprocess
from typing import Any
from urllib.parse import quote

from ..config import RepositoryInfo
from ..errors import HostAPIError
from ..utils.logging import log_debug, log_info, log_success, log_warning
from .models import (
    CheckStatus,
    PullRequest,
    Review,
    UpdateResult,
    map_check_run_status,
    map_commit_status_state,
)

_HTTP_STATUS_RE = re.compile(r"\(HTTP (\d{3})\)")


def _status_from_stderr(stderr: str | None) -> int | None:
    """Extract the HTTP status gh reports on failure, e.g. ``(HTTP 409)``."""
    if not stderr:
        return None
    match = _HTTP_STATUS_RE.search(stderr)
    return int(match.group(1)) if match else None


class GitHubClient:
    """Interact with one repository through ``gh api``.

    Parameters
    ----------
    gh_token : str
        GitHub token passed to gh as ``GH_TOKEN``.
    repo : RepositoryInfo
        Repository all calls are scoped to.

    Attributes
    ----------
    gh_token : str
        GitHub token.
    repo : RepositoryInfo
        Target repository.

    """

    def __init__(self, gh_token: str, repo: RepositoryInfo):
        """Initialize the client.

        Parameters
        ----------
        gh_token : str
            GitHub token passed to gh as ``GH_TOKEN``.
        repo : RepositoryInfo
            Repository all calls are scoped to.

        """
        self.gh_token = gh_token
        self.repo = repo

    @property
    def _prefix(self) -> str:
        return f"repos/{self.repo.owner}/{self.repo.repo}"

    def _run_gh_command(self, cmd: list[str], stdin: str | None = None) -> str:
        """Execute a gh CLI command.

        Parameters
        ----------
        cmd : list[str]
            Command and arguments to execute.
        stdin : str or None, optional
            Data written to the command's standard input.

        Returns
        -------
        str
            Stripped stdout from command.

        Raises
        ------
        subprocess.CalledProcessError
            If command fails.

        """
        env = os.environ.copy()
        env["GH_TOKEN"] = self.gh_token

        result = subprocess.run(
            cmd,
            input=stdin,
            capture_output=True,
            text=True,
            check=True,
            env=env,
        )
        return result.stdout.strip()

    def _api(
        self,
        path: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        description: str = "GitHub API request",
    ) -> Any:
        """Call a REST endpoint and decode the JSON response.

        Parameters
        ----------
        path : str
            Endpoint path, e.g. ``repos/o/r/pulls/1``.
        method : str, optional
            HTTP method (default="GET").
        body : dict or None, optional
            JSON request body.
        description : str, optional
            Operation name used in error messages.

        Returns
        -------
        Any
            Decoded JSON, or None for an empty response (e.g. HTTP 204).

        Raises
        ------
        HostAPIError
            If gh exits non-zero; ``status_code`` carries the HTTP status.

        """
        cmd = ["gh", "api", "--method", method, path]
        stdin = None
        if body is not None:
            cmd += ["--input", "-"]
            stdin = json.dumps(body)

        log_debug(f"gh api {method} {path}")
        try:
            output = self._run_gh_command(cmd, stdin=stdin)
        except subprocess.CalledProcessError as e:
            status = _status_from_stderr(e.stderr)
            detail = (e.stderr or "").strip()
            raise HostAPIError(f"{description} failed: {detail}", status) from e

        return json.loads(output) if output else None

    def _api_list(self, path: str, jq: str = ".[]", description: str = "") -> list:
        """Fetch every page of a list endpoint.

        ``jq`` selects the items to yield; gh prints one compact JSON value per
        line.
        """
        cmd = ["gh", "api", "--paginate", path, "--jq", jq]
        log_debug(f"gh api --paginate {path}")
        try:
            output = self._run_gh_command(cmd)
        except subprocess.CalledProcessError as e:
            status = _status_from_stderr(e.stderr)
            detail = (e.stderr or "").strip()
            raise HostAPIError(
                f"{description or 'Listing ' + path} failed: {detail}", status
            ) from e
        return [json.loads(line) for line in output.splitlines() if line.strip()]

    # Pull requests

    def get_pull_request(self, pr_number: int) -> PullRequest:
        """Fetch PR details."""
        data = self._api(
            f"{self._prefix}/pulls/{pr_number}",
            description=f"Fetching PR #{pr_number}",
        )
        return PullRequest.from_api(data)

    def list_pull_requests(self, label: str | None = None) -> list[PullRequest]:
        """List open PRs, oldest first, optionally filtered by label.

        Parameters
        ----------
        label : str or None, optional
            Only return PRs carrying this label.

        Returns
        -------
        list[PullRequest]
            Open PRs sorted by creation time.

        """
        items = self._api_list(
            f"{self._prefix}/pulls?state=open&per_page=100",
            description="Listing open PRs",
        )
        prs = [PullRequest.from_api(item) for item in items]
        if label is not None:
            prs = [pr for pr in prs if label in pr.labels]
        return sorted(prs, key=lambda pr: (pr.created_at, pr.number))

    def get_reviews(self, pr_number: int) -> list[Review]:
        """Fetch all reviews of a PR in submission order."""
        items = self._api_list(
            f"{self._prefix}/pulls/{pr_number}/reviews?per_page=100",
            description=f"Fetching reviews for PR #{pr_number}",
        )
        return [Review.from_api(item) for item in items]

    def get_commit_status(self, ref: str) -> list[CheckStatus]:
        """Fetch check runs and legacy commit statuses for a ref.

        Parameters
        ----------
        ref : str
            Commit SHA or branch name.

        Returns
        -------
        list[CheckStatus]
            Check runs followed by commit statuses.

        """
        check_runs = self._api_list(
            f"{self._prefix}/commits/{ref}/check-runs?per_page=100",
            jq=".check_runs[]",
            description=f"Fetching check runs for {ref}",
        )
        statuses = self._api_list(
            f"{self._prefix}/commits/{ref}/status?per_page=100",
            jq=".statuses[]",
            description=f"Fetching commit status for {ref}",
        )

        checks = [
            CheckStatus(
                name=run["name"],
                status=map_check_run_status(run.get("conclusion"), run.get("status", "")),
                conclusion=run.get("conclusion"),
            )
            for run in check_runs
        ]
        checks += [
            CheckStatus(
                name=status["context"],
                status=map_commit_status_state(status.get("state", "")),
                conclusion=status.get("state"),
            )
            for status in statuses
        ]
        return checks

    def is_branch_behind(self, pr_number: int) -> bool:
        """Check whether trunk has commits the PR branch is missing.

        Compares ``base...head``; ``behind_by`` counts commits on the base
        branch that are not reachable from the PR head.
        """
        pr = self.get_pull_request(pr_number)
        comparison = self._api(
            f"{self._prefix}/compare/{quote(pr.base_ref, safe='')}...{quote(pr.head_ref, safe='')}",
            description=f"Comparing branches of PR #{pr_number}",
        )
        return int(comparison.get("behind_by", 0)) > 0

    def update_branch(self, pr_number: int) -> UpdateResult:
        """Merge the base branch into the PR branch.

        Parameters
        ----------
        pr_number : int
            PR whose head branch is updated.

        Returns
        -------
        UpdateResult
            ``success`` with the new head SHA, or ``conflict=True`` on HTTP 409.

        Raises
        ------
        HostAPIError
            For any other failure.

        """
        pr = self.get_pull_request(pr_number)
        log_info(f"  Merging {pr.base_ref} into {pr.head_ref}")
        try:
            merge = self._api(
                f"{self._prefix}/merges",
                method="POST",
                body={
                    "base": pr.head_ref,
                    "head": pr.base_ref,
                    "commit_message": (
                        f"Merge {pr.base_ref} into {pr.head_ref} "
                        "(merge queue auto-update)"
                    ),
                },
                description=f"Updating branch for PR #{pr_number}",
            )
        except HostAPIError as e:
            if e.status_code == 409 or "conflict" in str(e).lower():
                log_warning(f"  Merge conflict updating PR #{pr_number}")
                return UpdateResult(
                    success=False, conflict=True, error="Merge conflict detected"
                )
            raise

        # HTTP 204: base already contained in head, nothing merged.
        sha = merge["sha"] if merge else pr.head_sha
        log_success(f"  Branch updated for PR #{pr_number} ({sha[:7]})")
        return UpdateResult(success=True, conflict=False, sha=sha)

    def merge_pull_request(
        self,
        pr_number: int,
        method: str = "squash",
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> str:
        """Merge a PR and return the merge commit SHA.

        Raises
        ------
        HostAPIError
            If the host refuses or does not report the PR as merged.

        """
        body: dict[str, Any] = {"merge_method": method}
        if commit_title:
            body["commit_title"] = commit_title
        if commit_message:
            body["commit_message"] = commit_message

        data = self._api(
            f"{self._prefix}/pulls/{pr_number}/merge",
            method="PUT",
            body=body,
            description=f"Merging PR #{pr_number}",
        )
        if not data or not data.get("merged"):
            raise HostAPIError(f"PR #{pr_number} was not merged")
        return data["sha"]

    def delete_branch(self, ref: str) -> None:
        """Delete a branch; failures are logged, not raised."""
        try:
            self._api(
                f"{self._prefix}/git/refs/heads/{quote(ref, safe='/')}",
                method="DELETE",
                description=f"Deleting branch {ref}",
            )
            log_info(f"  Deleted branch {ref}")
        except HostAPIError as e:
            log_warning(f"  Failed to delete branch {ref}: {e}")

    # Labels and comments

    def add_labels(self, pr_number: int, labels: list[str]) -> None:
        """Add labels to a PR."""
        if not labels:
            return
        self._api(
            f"{self._prefix}/issues/{pr_number}/labels",
            method="POST",
            body={"labels": labels},
            description=f"Adding labels to PR #{pr_number}",
        )

    def remove_label(self, pr_number: int, label: str) -> None:
        """Remove a label from a PR; a missing label is not an error."""
        try:
            self._api(
                f"{self._prefix}/issues/{pr_number}/labels/{quote(label, safe='')}",
                method="DELETE",
                description=f"Removing label from PR #{pr_number}",
            )
        except HostAPIError as e:
            if e.status_code == 404:
                return
            raise

    def add_comment(self, pr_number: int, body: str) -> None:
        """Post a comment on a PR."""
        self._api(
            f"{self._prefix}/issues/{pr_number}/comments",
            method="POST",
            body={"body": body},
            description=f"Commenting on PR #{pr_number}",
        )

    # Repository contents

    def ensure_branch(self, branch: str) -> None:
        """Create ``branch`` from the default branch if it does not exist."""
        try:
            self._api(
                f"{self._prefix}/branches/{quote(branch, safe='')}",
                description=f"Checking branch {branch}",
            )
            return
        except HostAPIError as e:
            if e.status_code != 404:
                raise

        log_info(f"Creating branch {branch} in {self.repo}")
        repo_data = self._api(self._prefix, description="Fetching repository")
        default_branch = repo_data["default_branch"]
        ref = self._api(
            f"{self._prefix}/git/ref/heads/{quote(default_branch, safe='')}",
            description=f"Fetching {default_branch} ref",
        )
        try:
            self._api(
                f"{self._prefix}/git/refs",
                method="POST",
                body={"ref": f"refs/heads/{branch}", "sha": ref["object"]["sha"]},
                description=f"Creating branch {branch}",
            )
        except HostAPIError as e:
            # Another run created it first.
            if e.status_code != 422:
                raise

    def get_file(self, path: str, ref: str) -> tuple[str, str] | None:
        """Read a file from the repository.

        Parameters
        ----------
        path : str
            File path in the repository.
        ref : str
            Branch or commit to read from.

        Returns
        -------
        tuple[str, str] or None
            ``(content, blob_sha)``, or None if the file or ref does not exist.

        """
        try:
            data = self._api(
                f"{self._prefix}/contents/{quote(path)}?ref={quote(ref, safe='')}",
                description=f"Reading {path}",
            )
        except HostAPIError as e:
            if e.status_code == 404:
                return None
            raise

        if not isinstance(data, dict) or data.get("type") != "file":
            raise HostAPIError(f"{path} is not a file")
        content = base64.b64decode(data.get("content", "")).decode("utf-8")
        return content, data["sha"]

    def put_file(
        self,
        path: str,
        content: str,
        branch: str,
        message: str,
        sha: str | None = None,
    ) -> str:
        """Create or update a file, conditional on its current blob SHA.

        Parameters
        ----------
        path : str
            File path in the repository.
        content : str
            New file content.
        branch : str
            Branch to commit to.
        message : str
            Commit message.
        sha : str or None, optional
            Blob SHA the caller last read; None to create the file.

        Returns
        -------
        str
            Blob SHA of the written file.

        Raises
        ------
        HostAPIError
            HTTP 409 when ``sha`` is stale, 422 when creating an existing file.

        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha is not None:
            body["sha"] = sha

        data = self._api(
            f"{self._prefix}/contents/{quote(path)}",
            method="PUT",
            body=body,
            description=f"Writing {path}",
        )
        return data["content"]["sha"]
