"""Shared utilities."""

from .logging import (
    get_console,
    log_debug,
    log_error,
    log_info,
    log_success,
    log_warning,
)

__all__ = [
    "get_console",
    "log_debug",
    "log_error",
    "log_info",
    "log_success",
    "log_warning",
]
