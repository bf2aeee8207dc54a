"""Console logging helpers built on rich."""

import os

from rich.console import Console

_console = Console(stderr=True, highlight=False)


def get_console() -> Console:
    """Return the shared rich console.

    Returns
    -------
    Console
        Console writing to stderr, so stdout stays free for action outputs.

    """
    return _console


def debug_enabled() -> bool:
    """Check whether debug logging was requested via the environment."""
    return bool(os.environ.get("MERGE_QUEUE_DEBUG") or os.environ.get("RUNNER_DEBUG"))


def log_debug(message: str) -> None:
    """Log a debug message (only when debug logging is enabled)."""
    if debug_enabled():
        _console.print(f"[dim]· {message}[/dim]")


def log_info(message: str) -> None:
    """Log an informational message."""
    _console.print(f"[blue]ℹ[/blue] {message}")


def log_success(message: str) -> None:
    """Log a success message."""
    _console.print(f"[green]✓[/green] {message}")


def log_warning(message: str) -> None:
    """Log a warning message."""
    _console.print(f"[yellow]⚠[/yellow] {message}")


def log_error(message: str) -> None:
    """Log an error message."""
    _console.print(f"[red]✗[/red] {message}")
