"""CLI command for adding a PR to the merge queue."""

import sys
from typing import Any

import click

from ...errors import MergeQueueError
from ...utils.logging import log_error, log_info
from ..utils import build_manager, print_outputs, queue_options


@click.command()
@click.option(
    "--pr-number",
    type=int,
    required=True,
    envvar="MERGE_QUEUE_PR_NUMBER",
    help="Pull request to queue",
)
@click.option(
    "--enqueued-by",
    default="",
    envvar="GITHUB_ACTOR",
    help="Who requested the merge (defaults to the workflow actor)",
)
@click.option(
    "--priority",
    type=int,
    default=0,
    show_default=True,
    help="Higher priorities are merged first",
)
@queue_options
def add(pr_number: int, enqueued_by: str, priority: int, **options: Any) -> None:
    r"""Validate a PR and add it to the merge queue.

    Prints ``valid``, ``position`` and ``reason`` outputs. A PR that fails
    validation is labelled and commented on; this is not a command failure.

    Examples:
      \b
      merge-queue add --repo VectorInstitute/repo-name --pr-number 123

    """
    try:
        manager = build_manager(options)
        log_info(f"Adding PR #{pr_number} to the merge queue for {options['repo']}")
        result = manager.enqueue(pr_number, enqueued_by=enqueued_by, priority=priority)
        print_outputs(
            {
                "valid": result.valid,
                "position": result.position,
                "reason": result.reason,
            }
        )
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        sys.exit(1)
    except MergeQueueError as e:
        log_error(f"Failed to add PR #{pr_number}: {e}")
        sys.exit(1)
    except Exception as e:
        log_error(f"Unexpected error: {e}")
        sys.exit(1)
