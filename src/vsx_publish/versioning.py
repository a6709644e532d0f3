"""Version bumping via ``npm version``.

The workflow never edits ``package.json`` itself: a validated directive is
handed to ``npm version`` which updates the manifest (and, in a git working
tree, commits and tags the change). The helper's output is forwarded to the
caller's own stdout/stderr unchanged.

Example:
    >>> await version_bump(Path("."), "patch")
    v1.0.1
"""

from __future__ import annotations

import asyncio
import re
import sys
from pathlib import Path

import structlog

from vsx_publish.errors import InvalidVersionError, UnsupportedOperationError, VersionBumpError

logger = structlog.get_logger(__name__)

SEMVER_PATTERN = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)
"""Semantic Versioning 2.0.0 grammar with an optional ``v`` prefix.

Numeric identifiers have no leading zeros and dot-separated identifiers are
never empty (e.g., 1.2.3, v1.2.3-beta.1, 1.0.0+build.5).
"""

BUMP_KEYWORDS = frozenset({"major", "minor", "patch"})
"""Directives passed straight through to ``npm version``."""

UNSUPPORTED_DIRECTIVES = frozenset({"premajor", "preminor", "prepatch", "prerelease", "from-git"})
"""``npm version`` directives that cannot be used to publish a release."""


def validate_version_directive(version: str) -> None:
    """Check that a bump directive can be handed to ``npm version``.

    Args:
        version: A bump keyword or an explicit semantic version.

    Raises:
        UnsupportedOperationError: For pre-release and from-git directives.
        InvalidVersionError: If an explicit version is not valid semver.
    """
    if version in BUMP_KEYWORDS:
        return
    if version in UNSUPPORTED_DIRECTIVES:
        raise UnsupportedOperationError(version)
    if not SEMVER_PATTERN.match(version):
        raise InvalidVersionError(version)


async def version_bump(
    cwd: Path | None = None,
    version: str | None = None,
    *,
    npm_command: str = "npm",
) -> None:
    """Bump the extension version with ``npm version``.

    A missing directive is a no-op. The directive is validated before any
    process is started.

    Args:
        cwd: Project directory to run in (defaults to the current directory).
        version: ``major``, ``minor``, ``patch`` or an explicit version.
        npm_command: npm executable.

    Raises:
        UnsupportedOperationError: For pre-release and from-git directives.
        InvalidVersionError: If an explicit version is not valid semver.
        VersionBumpError: If npm cannot be run or exits non-zero.
    """
    if not version:
        return

    validate_version_directive(version)

    cmd = [npm_command, "version", version]
    workdir = cwd if cwd is not None else Path.cwd()
    log = logger.bind(cwd=str(workdir), directive=version)
    log.info("version_bump_started")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(workdir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
    except OSError as e:
        log.error("version_bump_failed", error=str(e))
        raise VersionBumpError(f"Failed to run {npm_command}: {e}", command=cmd) from e

    stdout_text = stdout.decode("utf-8", errors="replace")
    stderr_text = stderr.decode("utf-8", errors="replace")

    if process.returncode != 0:
        log.error("version_bump_failed", returncode=process.returncode)
        message = stderr_text.strip() or stdout_text.strip()
        raise VersionBumpError(
            message or f"{' '.join(cmd)} exited with status {process.returncode}",
            command=cmd,
            returncode=process.returncode,
        )

    sys.stdout.write(stdout_text)
    sys.stderr.write(stderr_text)
    log.info("version_bump_completed")


__all__: list[str] = [
    "BUMP_KEYWORDS",
    "SEMVER_PATTERN",
    "UNSUPPORTED_DIRECTIVES",
    "validate_version_directive",
    "version_bump",
]
