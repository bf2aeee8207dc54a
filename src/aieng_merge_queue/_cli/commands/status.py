"""CLI command for showing the merge queue."""

import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ...errors import MergeQueueError
from ...state import QueueDocument
from ...utils.logging import log_error
from ..utils import build_manager, queue_options

_RESULT_STYLES = {
    "merged": "green",
    "failed": "red",
    "conflict": "yellow",
    "removed": "dim",
}


def _render(document: QueueDocument, console: Console, history_limit: int) -> None:
    """Render the queue document as rich tables."""
    if document.current is not None:
        current = document.current
        console.print(
            f"[bold]Processing:[/bold] PR #{current.pr_number} "
            f"({current.status.value}, since {current.started_at})"
        )
    else:
        console.print("[bold]Processing:[/bold] [dim]nothing[/dim]")

    queue_table = Table(title=f"Queue ({len(document.queue)})", title_justify="left")
    queue_table.add_column("#", justify="right")
    queue_table.add_column("PR", justify="right")
    queue_table.add_column("Priority", justify="right")
    queue_table.add_column("Enqueued by")
    queue_table.add_column("Enqueued at")
    for position, entry in enumerate(document.queue, start=1):
        queue_table.add_row(
            str(position),
            f"#{entry.pr_number}",
            str(entry.priority),
            entry.enqueued_by or "-",
            entry.enqueued_at,
        )
    console.print(queue_table)

    if history_limit > 0 and document.history:
        history_table = Table(title="Recent results", title_justify="left")
        history_table.add_column("PR", justify="right")
        history_table.add_column("Result")
        history_table.add_column("Duration", justify="right")
        history_table.add_column("Reason")
        for entry in document.history[:history_limit]:
            style = _RESULT_STYLES.get(entry.result.value, "")
            history_table.add_row(
                f"#{entry.pr_number}",
                f"[{style}]{entry.result.value}[/{style}]" if style else entry.result.value,
                f"{entry.duration_seconds:.0f}s",
                entry.reason or "",
            )
        console.print(history_table)

    stats = document.stats
    console.print(
        f"Processed: {stats.total_processed}  "
        f"Merged: [green]{stats.total_merged}[/green]  "
        f"Failed: [red]{stats.total_failed}[/red]"
    )


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Print the raw queue document")
@click.option(
    "--history",
    "history_limit",
    type=int,
    default=10,
    show_default=True,
    help="Number of recent results to show",
)
@queue_options
def status(as_json: bool, history_limit: int, **options: Any) -> None:
    """Show the PR in flight, the waiting queue and recent results."""
    stdout_console = Console(stderr=False)
    try:
        manager = build_manager(options)
        document = manager.status()
        if as_json:
            stdout_console.print_json(data=document.to_dict())
        else:
            _render(document, stdout_console, history_limit)
    except ValueError as e:
        log_error(f"Invalid configuration: {e}")
        sys.exit(1)
    except MergeQueueError as e:
        log_error(f"Failed to read queue state: {e}")
        sys.exit(1)
    except Exception as e:
        log_error(f"Unexpected error: {e}")
        sys.exit(1)
