"""CLI command for processing the head of the merge queue."""

import sys
from typing import Any

import click

from ...errors import CheckTimeoutError, MergeQueueError, StateError
from ...utils.logging import log_error, log_info
from ..utils import build_manager, print_outputs, queue_options


@click.command()
@queue_options
def process(**options: Any) -> None:
    r"""Process the next PR in the merge queue.

    Validates the PR, updates its branch with the base branch as needed, waits
    for checks and merges it. Prints ``processed``, ``pr-number``, ``result``
    and ``reason`` outputs.

    Exits with code 1 when checks time out (the PR is recorded as failed first)
    or when the queue state cannot be read or updated (the PR is left as is).

    Examples:
      \b
      merge-queue process --repo VectorInstitute/repo-name --state-backend gcs \\
        --gcs-bucket my-bucket

    """
    try:
        manager = build_manager(options)
        result = manager.process_next()
        print_outputs(
            {
                "processed": result.processed,
                "pr-number": result.pr_number,
                "result": result.result,
                "reason": result.reason,
            }
        )
        if result.pr_number is not None:
            log_info(f"PR #{result.pr_number}: {result.result}")
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        sys.exit(1)
    except CheckTimeoutError as e:
        log_error(f"Status checks timed out: {e}")
        sys.exit(1)
    except StateError as e:
        log_error(f"Queue state error, no PR was marked: {e}")
        sys.exit(1)
    except MergeQueueError as e:
        log_error(f"Failed to process queue: {e}")
        sys.exit(1)
    except Exception as e:
        log_error(f"Unexpected error: {e}")
        sys.exit(1)
