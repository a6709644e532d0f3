"""Terminal output helpers and exit codes.

This module provides shared utilities for user-facing output, including:
- Exit code constants
- Output helpers for consistent stderr/stdout usage

Progress and diagnostics go to stderr; confirmations of completed work go to
stdout so CI pipelines can capture them.

Example:
    from vsx_publish.output import error_exit, ExitCode

    if not path.exists():
        error_exit("Package not found", exit_code=ExitCode.NOT_FOUND, path=str(path))
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import typer

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands.

    Values mirror the ``exit_code`` attributes of the exception hierarchy in
    :mod:`vsx_publish.errors`.
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (conflicting options, bad version directive)."""

    NOT_FOUND = 3
    """Manifest, package or extension not found."""

    CREDENTIAL_ERROR = 4
    """No usable personal access token."""

    VALIDATION_ERROR = 5
    """Input validation failed (policy, duplicate version, bad package)."""

    SUBPROCESS_ERROR = 7
    """External helper process (npm, vsce) failed."""

    NETWORK_ERROR = 8
    """Gallery service unreachable."""

    ABORTED = 130
    """User declined a confirmation prompt."""


def _format(prefix: str, message: str, context: dict[str, str | int | bool | None]) -> str:
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        return f"{prefix}: {message} ({context_str})"
    return f"{prefix}: {message}"


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("Package not found", path="/path/to/ext.vsix")
        # Output: Error: Package not found (path=/path/to/ext.vsix)
    """
    typer.secho(_format("Error", message, context), fg=typer.colors.RED, err=True)


def error_exit(
    message: str,
    exit_code: int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Args:
        message: Error message to display.
        exit_code: Exit code to use (default: GENERAL_ERROR).
        **context: Optional context key-value pairs to include.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(int(exit_code))


def success(message: str) -> None:
    """Print a completion message to stdout, prefixed with ``DONE``.

    Args:
        message: Message to display.

    Example:
        success("Published acme.ext@1.0.0")
        # Output: DONE  Published acme.ext@1.0.0
    """
    typer.echo(typer.style("DONE", fg=typer.colors.GREEN, bold=True) + f"  {message}")


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection.
    """
    typer.echo(message, err=True)


__all__: list[str] = ["ExitCode", "error", "error_exit", "info", "success"]
