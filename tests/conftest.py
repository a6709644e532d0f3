"""Shared pytest configuration and fixtures for vsx-publish tests.

Provides:
- Requirement marker registration
- Settings isolated from the developer's environment
- Package (.vsix) and project builders
- Fake gallery client and credential provider for workflow tests
"""

from __future__ import annotations

import json
import os
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from vsx_publish.config import PublishSettings
from vsx_publish.gallery import PublishedExtension
from vsx_publish.store import CredentialProvider, PublisherCredential
from vsx_publish.telemetry import configure_logging

# =============================================================================
# Test Data
# =============================================================================

MANIFEST: dict[str, Any] = {
    "publisher": "acme",
    "name": "ext",
    "version": "1.0.0",
    "engines": {"vscode": "^1.80.0"},
}


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    """Return a fresh copy of the default package.json content."""
    return json.loads(json.dumps(MANIFEST))


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep VSX_PUBLISH_* variables and YAML files of the host out of tests."""
    for var in list(os.environ):
        if var.startswith("VSX_PUBLISH_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _quiet_logging() -> None:
    """Route logs to stderr and drop anything below WARNING."""
    configure_logging("WARNING")


@pytest.fixture
def settings(tmp_path: Path) -> PublishSettings:
    """Settings pointing the credential store into tmp_path."""
    return PublishSettings(
        store_path=tmp_path / "store.json",
        gallery_url="https://gallery.test",
        marketplace_url="https://marketplace.test",
    )


# =============================================================================
# Package and Project Builders
# =============================================================================


@pytest.fixture
def make_vsix(tmp_path: Path) -> Callable[..., Path]:
    """Return a builder writing a zip archive with the given entries.

    Example:
        >>> path = make_vsix({"extension/package.json": MANIFEST})
    """

    def _make(entries: dict[str, Any], name: str = "ext.vsix") -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for entry_name, content in entries.items():
                if isinstance(content, (dict, list)):
                    content = json.dumps(content)
                archive.writestr(entry_name, content)
        return path

    return _make


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Return a builder writing package.json into a fresh project directory."""

    def _make(manifest: dict[str, Any] | None = None, name: str = "project") -> Path:
        project = tmp_path / name
        project.mkdir()
        (project / "package.json").write_text(json.dumps(manifest or MANIFEST))
        return project

    return _make


# =============================================================================
# Collaborator Fakes
# =============================================================================


class StaticCredentialProvider(CredentialProvider):
    """Credential provider backed by a dict of publisher -> PAT."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self.tokens = tokens or {}
        self.lookups: list[str] = []

    def find_publisher(self, publisher: str) -> PublisherCredential | None:
        self.lookups.append(publisher)
        token = self.tokens.get(publisher)
        if token is None:
            return None
        return PublisherCredential(name=publisher, pat=token)


@pytest.fixture
def make_credentials() -> type[StaticCredentialProvider]:
    """Return the static credential provider class."""
    return StaticCredentialProvider


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    """Credential provider knowing the ``acme`` publisher."""
    return StaticCredentialProvider({"acme": "stored-pat"})


@pytest.fixture
def mock_gallery() -> MagicMock:
    """Gallery client mock usable as an async context manager.

    ``get_extension`` returns a listing with version 0.9.0 by default.
    """
    gallery = MagicMock()
    gallery.__aenter__ = AsyncMock(return_value=gallery)
    gallery.__aexit__ = AsyncMock(return_value=None)
    gallery.get_extension = AsyncMock(
        return_value=PublishedExtension.model_validate(
            {"extensionName": "ext", "versions": [{"version": "0.9.0"}], "flags": 0}
        )
    )
    gallery.create_extension = AsyncMock()
    gallery.update_extension = AsyncMock()
    gallery.update_extension_properties = AsyncMock()
    gallery.delete_extension = AsyncMock()
    return gallery


@pytest.fixture
def gallery_factory(mock_gallery: MagicMock) -> MagicMock:
    """Factory returning ``mock_gallery`` and recording the PAT it was given."""
    return MagicMock(return_value=mock_gallery)


# =============================================================================
# Requirement Marker Registration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom pytest markers.

    Registers the requirement marker for test traceability.
    """
    config.addinivalue_line(
        "markers",
        "requirement(id): Link test to a requirement ID (e.g., FR-001)",
    )
