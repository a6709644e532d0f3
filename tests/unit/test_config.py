"""Unit tests for settings and publish options."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from vsx_publish.config import PublishOptions, PublishSettings, get_settings, load_yaml_config


class TestPublishSettings:
    """Tests for PublishSettings defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Test default gallery endpoints and helper commands."""
        settings = PublishSettings()

        assert settings.marketplace_url == "https://marketplace.visualstudio.com"
        assert settings.gallery_url == "https://marketplace.visualstudio.com"
        assert settings.api_version == "3.0-preview.1"
        assert settings.npm_command == "npm"
        assert settings.vsce_command == "vsce"
        assert settings.store_path == Path.home() / ".vsce"
        assert settings.log_level == "WARNING"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test VSX_PUBLISH_* variables set fields."""
        monkeypatch.setenv("VSX_PUBLISH_GALLERY_URL", "https://gallery.test")
        monkeypatch.setenv("VSX_PUBLISH_TIMEOUT_SECONDS", "12.5")

        settings = PublishSettings()

        assert settings.gallery_url == "https://gallery.test"
        assert settings.timeout_seconds == 12.5

    def test_rejects_unknown_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test log_level is restricted to known levels."""
        monkeypatch.setenv("VSX_PUBLISH_LOG_LEVEL", "CHATTY")

        with pytest.raises(ValidationError):
            PublishSettings()


class TestGetSettings:
    """Tests for get_settings and the YAML loader."""

    def test_missing_yaml_returns_empty(self, tmp_path: Path) -> None:
        """Test a missing file yields no overrides."""
        assert load_yaml_config(tmp_path / "absent.yaml") == {}

    def test_empty_yaml_returns_empty(self, tmp_path: Path) -> None:
        """Test an empty file yields no overrides."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_config(path) == {}

    @pytest.mark.parametrize("content", ["- gallery_url\n- https://x.test\n", "just text\n", "42\n"])
    def test_non_mapping_yaml_rejected(self, tmp_path: Path, content: str) -> None:
        """Test a YAML file whose top level is not a mapping raises ValueError."""
        path = tmp_path / "list.yaml"
        path.write_text(content)

        with pytest.raises(ValueError, match="expected a mapping of settings"):
            load_yaml_config(path)

    def test_reads_yaml_values(self, tmp_path: Path) -> None:
        """Test YAML values populate settings."""
        path = tmp_path / "settings.yaml"
        path.write_text("vsce_command: /opt/vsce\nlog_level: INFO\n")

        settings = get_settings(path)

        assert settings.vsce_command == "/opt/vsce"
        assert settings.log_level == "INFO"

    def test_reads_default_file_in_cwd(self, tmp_path: Path) -> None:
        """Test .vsx-publish.yaml in the current directory is used by default."""
        (tmp_path / ".vsx-publish.yaml").write_text("npm_command: pnpm\n")

        assert get_settings().npm_command == "pnpm"

    @pytest.mark.requirement("FR-017")
    def test_environment_beats_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test environment variables override YAML values."""
        path = tmp_path / "settings.yaml"
        path.write_text("gallery_url: https://from-yaml.test\napi_version: '7.1'\n")
        monkeypatch.setenv("VSX_PUBLISH_GALLERY_URL", "https://from-env.test")

        settings = get_settings(path)

        assert settings.gallery_url == "https://from-env.test"
        assert settings.api_version == "7.1"


class TestPublishOptions:
    """Tests for PublishOptions."""

    def test_pat_is_secret(self) -> None:
        """Test the PAT is masked in the model repr."""
        options = PublishOptions(pat="s3cr3t")

        assert options.pat is not None
        assert options.pat.get_secret_value() == "s3cr3t"
        assert "s3cr3t" not in repr(options)

    def test_rejects_unknown_options(self) -> None:
        """Test unknown keys are refused."""
        with pytest.raises(ValidationError):
            PublishOptions(packagePath="x.vsix")  # type: ignore[call-arg]

    def test_conflicting_options_are_accepted_by_model(self) -> None:
        """Test package_path and version can be combined at model level."""
        options = PublishOptions(package_path=Path("x.vsix"), version="patch")

        assert options.version == "patch"
