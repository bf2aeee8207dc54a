"""CLI command for removing a PR from the merge queue."""

import sys
from typing import Any

import click

from ...errors import MergeQueueError
from ...utils.logging import log_error, log_warning
from ..utils import build_manager, print_outputs, queue_options


@click.command()
@click.option(
    "--pr-number",
    type=int,
    required=True,
    envvar="MERGE_QUEUE_PR_NUMBER",
    help="Pull request to remove",
)
@click.option(
    "--reason",
    default="Manual removal",
    show_default=True,
    help="Why the PR is being removed",
)
@queue_options
def remove(pr_number: int, reason: str, **options: Any) -> None:
    """Remove a waiting PR from the merge queue.

    A PR that is already being processed is not interrupted. Prints the
    ``removed`` output.
    """
    try:
        manager = build_manager(options)
        removed = manager.withdraw(pr_number, reason=reason)
        if not removed:
            log_warning(f"PR #{pr_number} was not waiting in the queue")
        print_outputs({"removed": removed})
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        sys.exit(1)
    except MergeQueueError as e:
        log_error(f"Failed to remove PR #{pr_number}: {e}")
        sys.exit(1)
    except Exception as e:
        log_error(f"Unexpected error: {e}")
        sys.exit(1)
