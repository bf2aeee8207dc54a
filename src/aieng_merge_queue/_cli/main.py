"""Entry point for the ``merge-queue`` command."""

import os

import click
from rich.console import Console

from ..utils.logging import get_console
from .commands.add import add
from .commands.process import process
from .commands.remove import remove
from .commands.status import status
from .utils import get_version


def print_header(console: Console) -> None:
    """Print a one-line header naming the tool and its version.

    Suppressed when ``MERGE_QUEUE_NO_BANNER`` is set, e.g. in workflow logs.

    Parameters
    ----------
    console : Console
        Console the header is written to.

    """
    if os.environ.get("MERGE_QUEUE_NO_BANNER"):
        return
    console.rule(f"[bold cyan]🔀 merge-queue {get_version()}[/bold cyan]", style="cyan")


def version_callback(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print the version and exit when ``--version`` is given."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"merge-queue {get_version()}")
    ctx.exit()


@click.group(
    invoke_without_command=True,
    help="Merge queue that re-validates and merges PRs one at a time",
)
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.option("--no-banner", is_flag=True, help="Do not print the header line")
@click.pass_context
def cli(ctx: click.Context, no_banner: bool) -> None:
    """Queue ready PRs and merge them one at a time.

    Each PR is brought up to date with its base branch and re-tested before
    it is merged, so trunk only receives tested combinations.
    """
    ctx.ensure_object(dict)
    ctx.obj["no_banner"] = no_banner

    if not no_banner:
        print_header(get_console())
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(add)
cli.add_command(remove)
cli.add_command(process)
cli.add_command(status)
