"""Configuration models for vsx-publish.

Provides the process-wide settings (gallery endpoints, helper commands,
credential store location, logging) and the per-invocation publish options.
Settings come from an optional YAML file and from ``VSX_PUBLISH_*``
environment variables; environment variables take precedence.

Example:
    >>> settings = get_settings()
    >>> settings.marketplace_url
    'https://marketplace.visualstudio.com'
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path(".vsx-publish.yaml")


class PublishSettings(BaseSettings):
    """Settings for the publishing workflow.

    Environment Variables:
        VSX_PUBLISH_MARKETPLACE_URL: Public Marketplace URL used for item links
        VSX_PUBLISH_GALLERY_URL: Base URL of the gallery REST service
        VSX_PUBLISH_API_VERSION: Gallery REST API version
        VSX_PUBLISH_TIMEOUT_SECONDS: HTTP timeout for gallery calls
        VSX_PUBLISH_NPM_COMMAND: Executable used for ``npm version``
        VSX_PUBLISH_VSCE_COMMAND: Executable used for ``vsce package``
        VSX_PUBLISH_STORE_PATH: Credential store file
        VSX_PUBLISH_LOG_LEVEL: Minimum log level
        VSX_PUBLISH_JSON_LOGS: Emit JSON logs instead of console output
    """

    model_config = SettingsConfigDict(
        env_prefix="VSX_PUBLISH_",
        env_file=".env",
        extra="ignore",
    )

    marketplace_url: str = Field(
        default="https://marketplace.visualstudio.com",
        description="Public Marketplace URL used to build item links",
    )
    gallery_url: str = Field(
        default="https://marketplace.visualstudio.com",
        description="Base URL of the gallery REST service (without /_apis)",
    )
    api_version: str = Field(
        default="3.0-preview.1",
        description="Gallery REST API version sent in the Accept header",
    )
    timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="HTTP timeout for gallery calls (uploads can be large)",
    )
    npm_command: str = Field(
        default="npm",
        description="Executable used to bump versions",
    )
    vsce_command: str = Field(
        default="vsce",
        description="Executable used to build packages",
    )
    store_path: Path = Field(
        default_factory=lambda: Path.home() / ".vsce",
        description="JSON credential store file",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Minimum log level",
    )
    json_logs: bool = Field(
        default=False,
        description="Render logs as JSON instead of console output",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Rank environment variables above values loaded from the YAML file."""
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class PublishOptions(BaseModel):
    """Options for a single publish, unpublish or delete invocation.

    ``package_path`` and ``version`` are mutually exclusive; the conflict is
    reported by the publish workflow rather than by validation so that it is
    raised as a ConfigurationConflictError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    package_path: Path | None = Field(
        default=None,
        description="Publish an existing package instead of building one",
    )
    version: str | None = Field(
        default=None,
        description="Version bump directive (major, minor, patch or x.y.z)",
    )
    cwd: Path | None = Field(
        default=None,
        description="Extension project directory (defaults to the current directory)",
    )
    pat: SecretStr | None = Field(
        default=None,
        description="Personal access token, bypassing the credential store",
    )
    base_content_url: str | None = Field(
        default=None,
        description="Prepended to relative links in README.md",
    )
    base_images_url: str | None = Field(
        default=None,
        description="Prepended to relative image links in README.md",
    )
    use_yarn: bool = Field(
        default=False,
        description="Use yarn instead of npm when packaging",
    )
    no_verify: bool = Field(
        default=False,
        description="Skip the proposed API check",
    )
    id: str | None = Field(
        default=None,
        description="Extension id (publisher.name) for unpublish and delete",
    )


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dictionary of configuration values, or empty dict if file doesn't exist.

    Raises:
        ValueError: If the top level of the file is not a mapping.
    """
    if not config_path.exists():
        return {}

    import yaml

    with config_path.open() as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{config_path}: expected a mapping of settings, got {type(data).__name__}"
        raise ValueError(msg)
    return data


def get_settings(config_path: Path | None = None) -> PublishSettings:
    """Load settings from environment and optionally a YAML file.

    Args:
        config_path: Optional path to YAML config file. Defaults to
            ``.vsx-publish.yaml`` in the current directory.

    Returns:
        Validated PublishSettings instance.

    Raises:
        pydantic.ValidationError: If a setting is invalid.
        ValueError: If the YAML file does not hold a mapping.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    # YAML values are passed as init kwargs, which rank below the environment
    return PublishSettings(**load_yaml_config(config_path))
