"""Queue document stored in a GCS bucket via the gcloud CLI."""

import json
import os
import subprocess
import tempfile
from typing import Any

from ..config import RepositoryInfo
from ..errors import ConcurrencyConflictError, HostAPIError, StateCorruptError
from .store import StateStore

# Attempts to read content at the generation just described; the object can
# be replaced between the two calls.
_READ_ATTEMPTS = 3


class GCSStateStore(StateStore):
    """Store the document as a GCS object.

    The object generation is the version token. Writes use
    ``--if-generation-match`` (generation 0 means "must not exist"), so GCS
    rejects any write based on a stale read.

    Parameters
    ----------
    bucket : str
        GCS bucket name (without ``gs://``).
    target_repo : RepositoryInfo
        Repository whose queue is stored.
    prefix : str, optional
        Object name prefix (default="merge-queue").
    **kwargs
        Passed to :class:`StateStore`.

    """

    def __init__(
        self,
        bucket: str,
        target_repo: RepositoryInfo,
        prefix: str = "merge-queue",
        **kwargs: Any,
    ):
        super().__init__(target_repo, **kwargs)
        self.bucket = bucket
        self.prefix = prefix

    @property
    def url(self) -> str:
        """Return the ``gs://`` URL of the state object."""
        return f"gs://{self.bucket}/{self.prefix}/{self.name}"

    def _run_gcloud_command(self, cmd: list[str]) -> str:
        """Execute a gcloud CLI command and return stripped stdout.

        Raises
        ------
        subprocess.CalledProcessError
            If command fails.

        """
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        return result.stdout.strip()

    @staticmethod
    def _is_missing(error: subprocess.CalledProcessError) -> bool:
        stderr = (error.stderr or "").lower()
        return "404" in stderr or "not found" in stderr or "no urls matched" in stderr

    def _describe_generation(self) -> str | None:
        try:
            output = self._run_gcloud_command(
                ["gcloud", "storage", "objects", "describe", self.url, "--format=json"]
            )
        except subprocess.CalledProcessError as e:
            if self._is_missing(e):
                return None
            raise HostAPIError(f"Failed to describe {self.url}: {e.stderr}") from e
        return str(json.loads(output)["generation"])

    def _load(self) -> tuple[Any, str] | None:
        for _ in range(_READ_ATTEMPTS):
            generation = self._describe_generation()
            if generation is None:
                return None
            try:
                content = self._run_gcloud_command(
                    ["gcloud", "storage", "cat", f"{self.url}#{generation}"]
                )
            except subprocess.CalledProcessError as e:
                if self._is_missing(e):
                    continue
                raise HostAPIError(f"Failed to read {self.url}: {e.stderr}") from e
            try:
                return json.loads(content), generation
            except json.JSONDecodeError as e:
                raise StateCorruptError(f"State object {self.url} is not valid JSON: {e}") from e

        raise HostAPIError(f"{self.url} kept changing while being read")

    def _store(self, data: dict[str, Any], expected_token: str | None) -> str:
        generation = expected_token or "0"
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as tmp:
            json.dump(data, tmp, indent=2)
            local_file = tmp.name

        try:
            self._run_gcloud_command(
                [
                    "gcloud",
                    "storage",
                    "cp",
                    local_file,
                    self.url,
                    f"--if-generation-match={generation}",
                    "--content-type=application/json",
                ]
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").lower()
            if "412" in stderr or "precondition" in stderr:
                raise ConcurrencyConflictError(
                    f"State object {self.url} changed since it was read"
                ) from e
            raise HostAPIError(f"Failed to write {self.url}: {e.stderr}") from e
        finally:
            os.unlink(local_file)

        # Informational only: atomic_update always re-reads before writing.
        return self._describe_generation() or generation
