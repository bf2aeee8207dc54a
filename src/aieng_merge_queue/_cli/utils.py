"""Shared helpers for merge-queue CLI commands."""

import os
from collections.abc import Callable
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import click
from rich.console import Console

from ..auto_merger import QueueManager
from ..config import QueueConfig, RepositoryInfo, parse_repository, split_csv
from ..github import GitHubClient
from ..state import GCSStateStore, GitHubContentsStateStore, LabelStateStore, StateStore
from ..utils.logging import log_debug

STATE_BACKENDS = ("github", "gcs", "labels")

# Options consumed by build_manager rather than QueueConfig
_STORE_OPTIONS = ("repo", "state_backend", "state_repo", "gcs_bucket")


def get_version() -> str:
    """Get the installed version of the package.

    Returns
    -------
    str
        Version string from package metadata.

    """
    try:
        return version("aieng-merge-queue")
    except PackageNotFoundError:
        return "unknown"


def _env(name: str) -> str:
    return f"MERGE_QUEUE_{name}"


_QUEUE_OPTIONS = [
    click.option(
        "--repo",
        required=True,
        envvar=[_env("REPO"), "GITHUB_REPOSITORY"],
        help="Target repository (owner/repo)",
    ),
    click.option(
        "--state-backend",
        type=click.Choice(STATE_BACKENDS, case_sensitive=False),
        default="github",
        show_default=True,
        envvar=_env("STATE_BACKEND"),
        help="Where the queue document is stored",
    ),
    click.option(
        "--state-repo",
        envvar=_env("STATE_REPO"),
        help="Repository holding the state branch (github backend, defaults to --repo)",
    ),
    click.option(
        "--gcs-bucket",
        envvar=_env("GCS_BUCKET"),
        help="Bucket holding the queue document (gcs backend)",
    ),
    click.option(
        "--required-approvals",
        type=int,
        default=1,
        show_default=True,
        envvar=_env("REQUIRED_APPROVALS"),
    ),
    click.option(
        "--block-labels",
        default="do-not-merge,wip",
        show_default=True,
        envvar=_env("BLOCK_LABELS"),
        help="Comma-separated labels that keep a PR out of the queue",
    ),
    click.option("--allow-draft/--no-allow-draft", default=False, envvar=_env("ALLOW_DRAFT")),
    click.option(
        "--allow-pending-checks/--no-allow-pending-checks",
        default=False,
        envvar=_env("ALLOW_PENDING_CHECKS"),
    ),
    click.option(
        "--auto-update-branch/--no-auto-update-branch",
        default=True,
        envvar=_env("AUTO_UPDATE_BRANCH"),
    ),
    click.option(
        "--update-timeout-minutes",
        type=int,
        default=30,
        show_default=True,
        envvar=_env("UPDATE_TIMEOUT_MINUTES"),
    ),
    click.option(
        "--max-update-retries",
        type=int,
        default=3,
        show_default=True,
        envvar=_env("MAX_UPDATE_RETRIES"),
    ),
    click.option(
        "--merge-method",
        type=click.Choice(["merge", "squash", "rebase"]),
        default="squash",
        show_default=True,
        envvar=_env("MERGE_METHOD"),
    ),
    click.option(
        "--delete-branch-after-merge/--keep-branch-after-merge",
        default=True,
        envvar=_env("DELETE_BRANCH_AFTER_MERGE"),
    ),
    click.option(
        "--ignore-checks",
        default="",
        envvar=_env("IGNORE_CHECKS"),
        help="Comma-separated check names that never block a merge",
    ),
    click.option(
        "--stale-after-minutes",
        type=int,
        default=None,
        envvar=_env("STALE_AFTER_MINUTES"),
        help="Idle time after which an in-flight PR is resumed (default: 2x update timeout)",
    ),
    click.option("--queue-label", default="ready", envvar=_env("QUEUE_LABEL")),
    click.option("--queued-label", default="queued-for-merge", envvar=_env("QUEUED_LABEL")),
    click.option(
        "--processing-label", default="merge-processing", envvar=_env("PROCESSING_LABEL")
    ),
    click.option("--updating-label", default="merge-updating", envvar=_env("UPDATING_LABEL")),
    click.option("--failed-label", default="merge-queue-failed", envvar=_env("FAILED_LABEL")),
    click.option(
        "--conflict-label", default="merge-queue-conflict", envvar=_env("CONFLICT_LABEL")
    ),
]


def queue_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the repository, backend and queue configuration options."""
    for option in reversed(_QUEUE_OPTIONS):
        func = option(func)
    return func


def build_config(options: dict[str, Any]) -> QueueConfig:
    """Build a validated ``QueueConfig`` from parsed CLI options.

    Raises
    ------
    ValueError
        If a value is out of range.

    """
    values = {k: v for k, v in options.items() if k not in _STORE_OPTIONS}
    values["block_labels"] = split_csv(values.get("block_labels"))
    values["ignore_checks"] = split_csv(values.get("ignore_checks"))
    return QueueConfig(**values)


def require_token() -> str:
    """Return ``GH_TOKEN`` from the environment.

    Raises
    ------
    ValueError
        If the variable is not set.

    """
    gh_token = os.environ.get("GH_TOKEN")
    if not gh_token:
        raise ValueError("GH_TOKEN environment variable not set")
    return gh_token


def build_store(
    backend: str,
    gh_token: str,
    target: RepositoryInfo,
    api: GitHubClient,
    config: QueueConfig,
    state_repo: str | None = None,
    gcs_bucket: str | None = None,
) -> StateStore:
    """Create the state store selected on the command line.

    Raises
    ------
    ValueError
        If the backend is unknown or its required option is missing.

    """
    backend = backend.lower()
    if backend == "github":
        state_client = (
            GitHubClient(gh_token, parse_repository(state_repo)) if state_repo else api
        )
        return GitHubContentsStateStore(state_client, target)
    if backend == "gcs":
        if not gcs_bucket:
            raise ValueError("--gcs-bucket is required for the gcs state backend")
        return GCSStateStore(gcs_bucket, target)
    if backend == "labels":
        return LabelStateStore(api, config)
    raise ValueError(f"Unknown state backend: {backend}")


def build_manager(options: dict[str, Any]) -> QueueManager:
    """Wire a ``QueueManager`` from parsed CLI options.

    Raises
    ------
    ValueError
        If the token is missing or an option is invalid.

    """
    gh_token = require_token()
    target = parse_repository(options["repo"])
    config = build_config(options)
    api = GitHubClient(gh_token, target)
    store = build_store(
        options["state_backend"],
        gh_token,
        target,
        api,
        config,
        state_repo=options.get("state_repo"),
        gcs_bucket=options.get("gcs_bucket"),
    )
    log_debug(f"Using {type(store).__name__} for {target}")
    return QueueManager(api, store, config)


def format_output_value(value: Any) -> str:
    """Render a value for a ``key=value`` GITHUB_OUTPUT line."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return " ".join(str(value).splitlines())


def print_outputs(outputs: dict[str, Any]) -> None:
    """Print ``key=value`` lines to stdout for GitHub Actions to capture."""
    # Logging goes to stderr, so stdout carries only these lines
    stdout_console = Console(stderr=False, highlight=False, soft_wrap=True)
    for key, value in outputs.items():
        stdout_console.print(f"{key}={format_output_value(value)}", markup=False)
