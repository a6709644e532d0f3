"""Building .vsix packages.

Archive construction is delegated to the ``vsce package`` command. The
workflow only needs the result: the path of the written package and the
manifest of the project it was built from.

Example:
    >>> packager = VsceCliPackager()
    >>> result = await packager.pack(Path("/tmp/ext.vsix"), cwd=Path("."))
    >>> result.manifest.full_name
    'acme.ext@1.0.0'
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import structlog

from vsx_publish.errors import PackagingError
from vsx_publish.manifest import Manifest, read_manifest

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PackageResult:
    """A package on disk together with the manifest it was built from.

    Attributes:
        manifest: The extension manifest.
        package_path: Path to the .vsix archive.
    """

    manifest: Manifest
    package_path: Path


class Packager(ABC):
    """Abstract base class for package builders."""

    @abstractmethod
    async def pack(
        self,
        package_path: Path,
        *,
        cwd: Path | None = None,
        base_content_url: str | None = None,
        base_images_url: str | None = None,
        use_yarn: bool = False,
    ) -> PackageResult:
        """Build a package of the project in ``cwd`` at ``package_path``.

        Raises:
            PackagingError: If the package cannot be built.
        """
        ...


class VsceCliPackager(Packager):
    """Packager that shells out to ``vsce package``."""

    def __init__(self, vsce_command: str = "vsce") -> None:
        self._vsce_command = vsce_command

    def build_command(
        self,
        package_path: Path,
        *,
        base_content_url: str | None = None,
        base_images_url: str | None = None,
        use_yarn: bool = False,
    ) -> list[str]:
        """Return the ``vsce package`` argument list."""
        cmd = [self._vsce_command, "package", "--out", str(package_path)]
        if base_content_url:
            cmd += ["--baseContentUrl", base_content_url]
        if base_images_url:
            cmd += ["--baseImagesUrl", base_images_url]
        if use_yarn:
            cmd.append("--yarn")
        return cmd

    async def pack(
        self,
        package_path: Path,
        *,
        cwd: Path | None = None,
        base_content_url: str | None = None,
        base_images_url: str | None = None,
        use_yarn: bool = False,
    ) -> PackageResult:
        """Run ``vsce package`` and read the project manifest.

        Raises:
            PackagingError: If vsce cannot be run or exits non-zero.
            ManifestNotFoundError: If the project has no package.json.
        """
        workdir = cwd if cwd is not None else Path.cwd()
        cmd = self.build_command(
            package_path,
            base_content_url=base_content_url,
            base_images_url=base_images_url,
            use_yarn=use_yarn,
        )
        log = logger.bind(cwd=str(workdir), package_path=str(package_path))
        log.info("packaging_started")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            log.error("packaging_failed", error=str(e))
            raise PackagingError(
                f"Failed to run {self._vsce_command}: {e}", command=cmd
            ) from e

        if process.returncode != 0:
            log.error("packaging_failed", returncode=process.returncode)
            detail = stderr.decode("utf-8", errors="replace").strip() or stdout.decode(
                "utf-8", errors="replace"
            ).strip()
            raise PackagingError(
                f"Packaging failed: {detail or f'exit status {process.returncode}'}",
                command=cmd,
                returncode=process.returncode,
            )

        manifest = read_manifest(workdir)
        log.info("packaging_completed", extension=manifest.full_name)
        return PackageResult(manifest=manifest, package_path=package_path)


__all__: list[str] = ["PackageResult", "Packager", "VsceCliPackager"]
