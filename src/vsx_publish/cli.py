"""CLI entry point for vsx-publish.

Provides a Typer-based CLI with an async execution wrapper around the
publishing workflows.

Usage:
    vsx-publish --help
    vsx-publish publish [VERSION] [--packagePath PATH] [--pat TOKEN]
    vsx-publish unpublish [ID] [--pat TOKEN]
    vsx-publish delete [ID] [--pat TOKEN]

Example:
    >>> vsx-publish publish patch
    >>> vsx-publish publish --packagePath ext.vsix
    >>> vsx-publish unpublish acme.ext
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
import yaml
from pydantic import SecretStr

from vsx_publish import __version__
from vsx_publish.config import PublishOptions, PublishSettings, get_settings
from vsx_publish.errors import VsxPublishError
from vsx_publish.output import ExitCode, error_exit
from vsx_publish.publish import PublishService
from vsx_publish.telemetry import configure_logging

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="vsx-publish",
    help="Publish extensions to the Visual Studio Marketplace.",
    no_args_is_help=True,
)

PatOption = Annotated[
    str | None,
    typer.Option("--pat", "-p", help="Personal access token (overrides stored credentials)"),
]
CwdOption = Annotated[
    Path | None,
    typer.Option("--cwd", help="Extension project directory", file_okay=False),
]


def _run_async(coro: Any) -> Any:
    """Run an async coroutine synchronously.

    Args:
        coro: Async coroutine to execute.

    Returns:
        Result of the coroutine.
    """
    return asyncio.run(coro)


def _settings(ctx: typer.Context) -> PublishSettings:
    settings: PublishSettings = ctx.obj["settings"]
    return settings


def _execute(ctx: typer.Context, operation: str, options: PublishOptions) -> None:
    """Run a workflow and translate its failures into exit codes."""
    service = PublishService(_settings(ctx))
    workflow = getattr(service, operation)
    try:
        _run_async(workflow(options))
    except VsxPublishError as e:
        logger.debug("command_failed", operation=operation, error_type=type(e).__name__)
        error_exit(str(e), exit_code=e.exit_code)
    except Exception as e:
        logger.exception("command_crashed", operation=operation)
        error_exit(str(e) or type(e).__name__, exit_code=ExitCode.GENERAL_ERROR)


def _secret(pat: str | None) -> SecretStr | None:
    return SecretStr(pat) if pat else None


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command()
def publish(
    ctx: typer.Context,
    version: Annotated[
        str | None,
        typer.Argument(help="Bump to this version first: major, minor, patch or x.y.z"),
    ] = None,
    package_path: Annotated[
        Path | None,
        typer.Option(
            "--packagePath",
            "-i",
            help="Publish an existing .vsix instead of packaging the project",
            dir_okay=False,
        ),
    ] = None,
    pat: PatOption = None,
    cwd: CwdOption = None,
    base_content_url: Annotated[
        str | None,
        typer.Option("--baseContentUrl", help="Prepend to relative links in README.md"),
    ] = None,
    base_images_url: Annotated[
        str | None,
        typer.Option("--baseImagesUrl", help="Prepend to relative image links in README.md"),
    ] = None,
    yarn: Annotated[
        bool,
        typer.Option("--yarn", help="Use yarn instead of npm while packaging"),
    ] = False,
    no_verify: Annotated[
        bool,
        typer.Option("--noVerify", help="Allow extensions using the proposed API"),
    ] = False,
) -> None:
    """Publish an extension, packaging it first unless --packagePath is given."""
    options = PublishOptions(
        package_path=package_path,
        version=version,
        cwd=cwd,
        pat=_secret(pat),
        base_content_url=base_content_url,
        base_images_url=base_images_url,
        use_yarn=yarn,
        no_verify=no_verify,
    )
    _execute(ctx, "publish", options)


@app.command()
def unpublish(
    ctx: typer.Context,
    extension_id: Annotated[
        str | None,
        typer.Argument(metavar="ID", help="Extension id (publisher.name)"),
    ] = None,
    pat: PatOption = None,
    cwd: CwdOption = None,
) -> None:
    """Hide an extension from the Marketplace."""
    _execute(ctx, "unpublish", PublishOptions(id=extension_id, pat=_secret(pat), cwd=cwd))


@app.command()
def delete(
    ctx: typer.Context,
    extension_id: Annotated[
        str | None,
        typer.Argument(metavar="ID", help="Extension id (publisher.name)"),
    ] = None,
    pat: PatOption = None,
    cwd: CwdOption = None,
) -> None:
    """Delete an extension and all of its versions from the Marketplace.

    WARNING: This is destructive and cannot be undone.
    """
    _execute(ctx, "delete", PublishOptions(id=extension_id, pat=_secret(pat), cwd=cwd))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="YAML settings file (default: .vsx-publish.yaml)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the version and exit",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Publish extensions to the Visual Studio Marketplace.

    Credentials are taken from --pat, then VSX_PUBLISH_PAT_<PUBLISHER> or
    VSX_PUBLISH_PAT, then the credential store file.
    """
    try:
        settings = get_settings(config)
    except (ValueError, yaml.YAMLError) as e:
        error_exit(f"Invalid settings: {e}", exit_code=ExitCode.USAGE_ERROR)

    configure_logging("DEBUG" if verbose else settings.log_level, json_output=settings.json_logs)
    ctx.obj = {"settings": settings}


if __name__ == "__main__":
    app()
