"""Reduced-feature backend that keeps queue membership in PR labels.

The queue is whatever open PRs carry the queued label, ordered by creation
time; the in-flight PR is the one carrying the processing label, including
one this store saw in flight that has since been merged or closed. Nothing else
survives a write: history, stats and priorities are always empty/zero. The
conditional write re-reads label membership and compares digests before
applying label changes; the host offers no atomic multi-label update, so a
writer racing inside that window can still interleave.
"""

import hashlib
import json
from typing import Any

from ..config import QUEUE_VERSION, QueueConfig
from ..errors import ConcurrencyConflictError, HostAPIError
from ..github import GitHubClient, PullRequest
from ..utils.logging import log_debug
from .models import ProcessingStatus, utc_now
from .store import StateStore

_UNKNOWN_TIME = "1970-01-01T00:00:00+00:00"


def _membership_token(queued: list[int], processing: list[int]) -> str:
    payload = json.dumps({"queued": sorted(queued), "processing": sorted(processing)})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class LabelStateStore(StateStore):
    """Derive the queue document from labels on the target repository.

    Parameters
    ----------
    client : GitHubClient
        Client scoped to the target repository.
    config : QueueConfig
        Supplies the queued and processing label names.
    **kwargs
        Passed to :class:`StateStore`.

    """

    def __init__(self, client: GitHubClient, config: QueueConfig, **kwargs: Any):
        super().__init__(client.repo, **kwargs)
        self.client = client
        self.config = config
        self._in_flight: int | None = None

    def _membership(self) -> tuple[list[PullRequest], list[PullRequest]]:
        prs = self.client.list_pull_requests()
        queued = [pr for pr in prs if self.config.queued_label in pr.labels]
        processing = [pr for pr in prs if self.config.processing_label in pr.labels]

        # Open PRs only are listed; a PR merged or closed while in flight keeps
        # its processing label until this store's write clears it.
        if self._in_flight is not None and self._in_flight not in {pr.number for pr in prs}:
            pr = self._fetch(self._in_flight)
            if pr is not None and self.config.processing_label in pr.labels:
                processing.append(pr)
        return queued, processing

    def _fetch(self, pr_number: int) -> PullRequest | None:
        try:
            return self.client.get_pull_request(pr_number)
        except HostAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def _load(self) -> tuple[Any, str]:
        queued, processing = self._membership()
        self._in_flight = processing[0].number if processing else None
        now = utc_now()
        current = None
        if processing:
            # Labels carry no timestamps; an unknown age reads as abandoned, so
            # the next run always resumes the labelled PR.
            current = {
                "pr_number": processing[0].number,
                "status": ProcessingStatus.VALIDATING.value,
                "started_at": _UNKNOWN_TIME,
                "updated_at": _UNKNOWN_TIME,
            }

        data = {
            "version": QUEUE_VERSION,
            "updated_at": now,
            "current": current,
            "queue": [
                {
                    "pr_number": pr.number,
                    "enqueued_at": pr.created_at or now,
                    "enqueued_by": pr.author,
                    "head_sha": pr.head_sha,
                    "priority": 0,
                }
                for pr in queued
            ],
            "history": [],
            "stats": {"total_processed": 0, "total_merged": 0, "total_failed": 0},
        }
        token = _membership_token(
            [pr.number for pr in queued], [pr.number for pr in processing]
        )
        return data, token

    def _store(self, data: dict[str, Any], expected_token: str | None) -> str:
        queued, processing = self._membership()
        actual_queued = {pr.number for pr in queued}
        actual_processing = {pr.number for pr in processing}
        if _membership_token(list(actual_queued), list(actual_processing)) != expected_token:
            raise ConcurrencyConflictError("Queue labels changed since they were read")

        current = data.get("current")
        want_processing = {current["pr_number"]} if current else set()
        want_queued = {entry["pr_number"] for entry in data["queue"]} - want_processing

        for number in sorted(want_queued - actual_queued):
            self.client.add_labels(number, [self.config.queued_label])
        for number in sorted(actual_queued - want_queued):
            self.client.remove_label(number, self.config.queued_label)
        for number in sorted(want_processing - actual_processing):
            self.client.add_labels(number, [self.config.processing_label])
        for number in sorted(actual_processing - want_processing):
            self.client.remove_label(number, self.config.processing_label)

        self._in_flight = current["pr_number"] if current else None
        log_debug(
            f"Labels synced: queued={sorted(want_queued)} processing={sorted(want_processing)}"
        )
        return _membership_token(list(want_queued), list(want_processing))
