"""Publisher credential resolution.

A publisher's personal access token (PAT) is looked up, in order, from:

1. ``VSX_PUBLISH_PAT_<PUBLISHER>`` (publisher upper-cased, ``-`` and ``.``
   replaced with ``_``), then ``VSX_PUBLISH_PAT``
2. The JSON credential store file (default ``~/.vsce``)::

       {"publishers": [{"name": "acme", "pat": "..."}]}

The store is only ever read. Tokens are held as ``SecretStr`` and never
logged.

Example:
    >>> provider = create_credential_provider(get_settings())
    >>> provider.get_publisher("acme").pat.get_secret_value()
    '...'
"""

from __future__ import annotations

import json
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from vsx_publish.errors import CredentialStoreError, PublisherNotFoundError

if TYPE_CHECKING:
    from vsx_publish.config import PublishSettings

logger = structlog.get_logger(__name__)

ENV_PAT_PREFIX = "VSX_PUBLISH_PAT"
"""Environment variable (and prefix of per-publisher variables) holding a PAT."""


class PublisherCredential(BaseModel):
    """A publisher and its personal access token."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Publisher name")
    pat: SecretStr = Field(..., description="Personal access token")


def publisher_env_var(publisher: str) -> str:
    """Return the per-publisher PAT environment variable name.

    Example:
        >>> publisher_env_var("my-org.tools")
        'VSX_PUBLISH_PAT_MY_ORG_TOOLS'
    """
    return f"{ENV_PAT_PREFIX}_{re.sub(r'[^A-Za-z0-9]', '_', publisher).upper()}"


class CredentialProvider(ABC):
    """Abstract base class for publisher credential sources.

    Subclasses must implement:
        - find_publisher(): Return the credential or None if unknown
    """

    @abstractmethod
    def find_publisher(self, publisher: str) -> PublisherCredential | None:
        """Look up a publisher's credential.

        Returns:
            The credential, or None if this source does not know the publisher.

        Raises:
            CredentialStoreError: If the source exists but cannot be read.
        """
        ...

    def get_publisher(self, publisher: str) -> PublisherCredential:
        """Return a publisher's credential.

        Raises:
            PublisherNotFoundError: If no credential is known.
            CredentialStoreError: If the source cannot be read.
        """
        credential = self.find_publisher(publisher)
        if credential is None:
            raise PublisherNotFoundError(publisher, env_var=publisher_env_var(publisher))
        return credential


class EnvCredentialProvider(CredentialProvider):
    """Reads PATs from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def find_publisher(self, publisher: str) -> PublisherCredential | None:
        for var in (publisher_env_var(publisher), ENV_PAT_PREFIX):
            token = self._environ.get(var)
            if token:
                logger.debug("credential_resolved", publisher=publisher, source="env", var=var)
                return PublisherCredential(name=publisher, pat=SecretStr(token))
        return None


class FileCredentialProvider(CredentialProvider):
    """Reads PATs from the JSON credential store file.

    A missing file means no publishers are known; an unreadable or malformed
    file is an error.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def _load(self) -> list[PublisherCredential]:
        if not self._path.exists():
            return []

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CredentialStoreError(str(self._path), str(e)) from e

        entries = data.get("publishers") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise CredentialStoreError(str(self._path), "expected a 'publishers' list")

        try:
            return [PublisherCredential.model_validate(entry) for entry in entries]
        except ValueError as e:
            raise CredentialStoreError(str(self._path), "invalid publisher entry") from e

    def find_publisher(self, publisher: str) -> PublisherCredential | None:
        for credential in self._load():
            if credential.name == publisher:
                logger.debug(
                    "credential_resolved",
                    publisher=publisher,
                    source="file",
                    path=str(self._path),
                )
                return credential
        return None


class ChainedCredentialProvider(CredentialProvider):
    """Asks each provider in turn; the first one that knows the publisher wins."""

    def __init__(self, providers: Sequence[CredentialProvider]) -> None:
        self._providers = list(providers)

    def find_publisher(self, publisher: str) -> PublisherCredential | None:
        for provider in self._providers:
            credential = provider.find_publisher(publisher)
            if credential is not None:
                return credential
        return None


def create_credential_provider(settings: PublishSettings) -> CredentialProvider:
    """Build the default provider chain (environment, then store file)."""
    return ChainedCredentialProvider(
        [
            EnvCredentialProvider(),
            FileCredentialProvider(settings.store_path.expanduser()),
        ]
    )


__all__: list[str] = [
    "ENV_PAT_PREFIX",
    "ChainedCredentialProvider",
    "CredentialProvider",
    "EnvCredentialProvider",
    "FileCredentialProvider",
    "PublisherCredential",
    "create_credential_provider",
    "publisher_env_var",
]
