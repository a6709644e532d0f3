"""Extension manifest model and readers.

The manifest is the extension's ``package.json``. It is read either from a
project directory or from the ``extension/package.json`` entry of a built
``.vsix`` package (a zip archive). Only the identity fields and the proposed
API flag are interpreted; every other key is preserved as-is.

Example:
    >>> manifest = read_manifest_from_package(Path("acme.ext-1.0.0.vsix"))
    >>> manifest.full_name
    'acme.ext@1.0.0'
"""

from __future__ import annotations

import json
import re
import zipfile
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vsx_publish.errors import ManifestNotFoundError, ManifestParseError, PackageReadError

logger = structlog.get_logger(__name__)

MANIFEST_ENTRY_PATTERN = re.compile(r"^extension/package\.json$", re.IGNORECASE)
"""Archive entry holding the manifest inside a .vsix package."""

MANIFEST_FILENAME = "package.json"


class Manifest(BaseModel):
    """Extension manifest (``package.json``).

    Attributes:
        publisher: Publisher name.
        name: Extension name.
        version: Semantic version of the release.
        enable_proposed_api: Whether the extension uses the proposed API surface.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    publisher: str = Field(..., min_length=1, description="Publisher name")
    name: str = Field(..., min_length=1, description="Extension name")
    version: str = Field(..., min_length=1, description="Semantic version")
    enable_proposed_api: bool = Field(
        default=False,
        alias="enableProposedApi",
        description="Extension uses the proposed (restricted) API surface",
    )

    @property
    def extension_id(self) -> str:
        """Return the extension identity ``publisher.name``."""
        return f"{self.publisher}.{self.name}"

    @property
    def full_name(self) -> str:
        """Return the release identity ``publisher.name@version``."""
        return f"{self.extension_id}@{self.version}"

    def to_json_dict(self) -> dict[str, Any]:
        """Return the manifest as it appeared in ``package.json``."""
        extra = dict(self.model_extra or {})
        data = self.model_dump(by_alias=True, exclude_unset=True, exclude=set(extra))
        data.update(extra)
        return data


def parse_manifest(content: bytes, source: str) -> Manifest:
    """Parse raw ``package.json`` bytes into a Manifest.

    Args:
        content: UTF-8 encoded JSON document.
        source: Description of where the bytes came from, for error messages.

    Returns:
        Parsed Manifest.

    Raises:
        ManifestParseError: If the bytes are not a JSON object with the
            required identity fields.
    """
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestParseError(source, str(e)) from e

    if not isinstance(data, dict):
        raise ManifestParseError(source, "expected a JSON object")

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ManifestParseError(source, f"missing or invalid fields: {fields}") from e


def read_manifest(cwd: Path | None = None) -> Manifest:
    """Read the manifest of an extension project.

    Args:
        cwd: Project directory (defaults to the current directory).

    Returns:
        The project's Manifest.

    Raises:
        ManifestNotFoundError: If the directory has no package.json.
        ManifestParseError: If package.json is invalid.
    """
    project_dir = cwd if cwd is not None else Path.cwd()
    manifest_path = project_dir / MANIFEST_FILENAME

    try:
        content = manifest_path.read_bytes()
    except FileNotFoundError as e:
        raise ManifestNotFoundError(str(project_dir)) from e

    logger.debug("manifest_read", path=str(manifest_path))
    return parse_manifest(content, str(manifest_path))


def _iter_entries(archive: zipfile.ZipFile) -> Iterator[zipfile.ZipInfo]:
    """Yield entries from the archive's central directory, in archive order.

    ``zipfile`` loads the whole central directory when the archive is opened,
    so this walks an in-memory listing. No entry data is read.
    """
    yield from archive.infolist()


def read_manifest_from_package(package_path: Path) -> Manifest:
    """Extract the manifest embedded in a packaged extension.

    The entry listing comes from the zip central directory, which is read in
    full when the archive is opened. The search stops at the first entry named
    ``extension/package.json`` (case-insensitive) and only that entry's data
    is decompressed; no other entry's contents are read.

    Args:
        package_path: Path to the .vsix archive.

    Returns:
        The embedded Manifest.

    Raises:
        PackageReadError: If the archive cannot be opened or the manifest
            entry cannot be read (corrupt or truncated archive).
        ManifestNotFoundError: If no manifest entry exists.
        ManifestParseError: If the manifest entry is not valid JSON.
    """
    source = str(package_path)

    try:
        with zipfile.ZipFile(package_path) as archive:
            entry = next(
                (info for info in _iter_entries(archive) if MANIFEST_ENTRY_PATTERN.match(info.filename)),
                None,
            )
            if entry is None:
                raise ManifestNotFoundError(source)

            with archive.open(entry) as stream:
                content = stream.read()
    except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as e:
        raise PackageReadError(source, str(e)) from e

    logger.debug("package_manifest_extracted", path=source, entry=entry.filename)
    return parse_manifest(content, f"{source}:{entry.filename}")


__all__: list[str] = [
    "MANIFEST_ENTRY_PATTERN",
    "Manifest",
    "parse_manifest",
    "read_manifest",
    "read_manifest_from_package",
]
