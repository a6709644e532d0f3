"""Async client for the Marketplace gallery REST service.

Provides the five gallery operations the publishing workflow needs:

- get_extension: fetch a listing (optionally with its version history)
- create_extension: upload a package as a new listing
- update_extension: upload a package as a new version of a listing
- update_extension_properties: rewrite a listing's flags
- delete_extension: remove a listing

Requests authenticate with HTTP basic auth (user ``OAuth``, the personal
access token as password). A 404 is raised as ExtensionNotFoundError so
callers can treat "absent" distinctly; every other failure is a GalleryError.
Nothing is retried.

Example:
    >>> async with GalleryClient(pat, settings) as gallery:
    ...     extension = await gallery.get_extension(
    ...         "acme", "ext", flags=ExtensionQueryFlags.INCLUDE_VERSIONS
    ...     )
    ...     print([v.version for v in extension.versions])
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from enum import IntFlag
from types import TracebackType
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from vsx_publish.errors import ExtensionNotFoundError, GalleryError
from vsx_publish.telemetry import tracer

if TYPE_CHECKING:
    from vsx_publish.config import PublishSettings

logger = structlog.get_logger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024
"""Bytes read from the package file per upload chunk."""

GALLERY_USERNAME = "OAuth"
"""Basic auth user name paired with a personal access token."""


class ExtensionQueryFlags(IntFlag):
    """Flags controlling which parts of a listing the gallery returns."""

    NONE = 0
    INCLUDE_VERSIONS = 0x1
    INCLUDE_FILES = 0x2
    INCLUDE_CATEGORY_AND_TAGS = 0x4
    INCLUDE_SHARED_ACCOUNTS = 0x8
    INCLUDE_VERSION_PROPERTIES = 0x10
    EXCLUDE_NON_VALIDATED = 0x20
    INCLUDE_INSTALLATION_TARGETS = 0x40
    INCLUDE_ASSET_URI = 0x80
    INCLUDE_STATISTICS = 0x100
    INCLUDE_LATEST_VERSION_ONLY = 0x200


class PublishedExtensionFlags(IntFlag):
    """Status flags of a published listing."""

    NONE = 0
    DISABLED = 0x1
    BUILT_IN = 0x2
    VALIDATED = 0x4
    TRUSTED = 0x8
    PAID = 0x10
    PUBLIC = 0x100
    SYSTEM = 0x200
    PREVIEW = 0x400
    UNPUBLISHED = 0x1000
    TRIAL = 0x2000
    LOCKED = 0x4000
    HIDDEN = 0x8000

    @classmethod
    def parse(cls, value: Any) -> PublishedExtensionFlags:
        """Parse flags as sent by the gallery.

        The service serializes flags either as an integer or as a comma
        separated list of camelCase names (``"validated, public"``).

        Raises:
            ValueError: If a flag name is unknown.
        """
        if value is None or value == "":
            return cls.NONE
        if isinstance(value, (int, cls)):
            return cls(value)
        if not isinstance(value, str):
            msg = f"Unsupported flags value: {value!r}"
            raise ValueError(msg)

        by_name = {
            name.replace("_", "").lower(): member for name, member in cls.__members__.items()
        }
        result = cls.NONE
        for part in value.split(","):
            key = part.strip().lower()
            if not key:
                continue
            if key not in by_name:
                msg = f"Unknown extension flag: {part.strip()}"
                raise ValueError(msg)
            result |= by_name[key]
        return result


class ExtensionVersion(BaseModel):
    """One published version of a listing."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str = Field(..., description="Version string")


class PublisherRef(BaseModel):
    """Publisher summary embedded in a listing."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    publisher_name: str = Field(..., alias="publisherName")
    display_name: str | None = Field(default=None, alias="displayName")


class PublishedExtension(BaseModel):
    """A gallery listing as returned by get_extension."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    extension_name: str = Field(..., alias="extensionName")
    display_name: str | None = Field(default=None, alias="displayName")
    publisher: PublisherRef | None = Field(default=None)
    versions: list[ExtensionVersion] = Field(default_factory=list)
    flags: int = Field(default=0, ge=0, description="PublishedExtensionFlags bitfield")

    @field_validator("versions", mode="before")
    @classmethod
    def _none_versions(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("flags", mode="before")
    @classmethod
    def _parse_flags(cls, value: Any) -> int:
        return int(PublishedExtensionFlags.parse(value))

    @property
    def extension_flags(self) -> PublishedExtensionFlags:
        """Return the listing flags as PublishedExtensionFlags."""
        return PublishedExtensionFlags(self.flags)

    def has_version(self, version: str) -> bool:
        """Return True if ``version`` has already been published."""
        return any(v.version == version for v in self.versions)


def get_published_url(marketplace_url: str, extension_id: str) -> str:
    """Return the public Marketplace page of an extension.

    Example:
        >>> get_published_url("https://marketplace.visualstudio.com", "acme.ext")
        'https://marketplace.visualstudio.com/items?itemName=acme.ext'
    """
    return f"{marketplace_url.rstrip('/')}/items?itemName={extension_id}"


async def _iter_chunks(stream: BinaryIO) -> AsyncIterator[bytes]:
    while chunk := await asyncio.to_thread(stream.read, UPLOAD_CHUNK_SIZE):
        yield chunk


def _extension_path(publisher: str, name: str) -> str:
    return f"publishers/{quote(publisher, safe='')}/extensions/{quote(name, safe='')}"


def _error_message(response: httpx.Response) -> str:
    """Extract the service's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    text = response.text.strip()
    return text or f"Gallery request failed with status {response.status_code}"


class GalleryClient:
    """Async client for the gallery REST API.

    Use as an async context manager; the underlying HTTP connection pool is
    closed on exit.

    Args:
        pat: Personal access token.
        settings: Settings providing the gallery URL, API version and timeout.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        pat: str,
        settings: PublishSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=f"{settings.gallery_url.rstrip('/')}/_apis/gallery/",
            auth=httpx.BasicAuth(GALLERY_USERNAME, pat),
            headers={"Accept": f"application/json;api-version={settings.api_version}"},
            timeout=settings.timeout_seconds,
            transport=transport,
        )
        self._log = logger.bind(gallery_url=settings.gallery_url)

    async def __aenter__(self) -> GalleryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP connection pool."""
        await self._http.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        extension_id: str,
        params: dict[str, Any] | None = None,
        content: AsyncIterator[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request and map failures to gallery errors.

        Raises:
            ExtensionNotFoundError: On HTTP 404.
            GalleryError: On any other non-2xx status or transport failure.
        """
        with tracer.start_as_current_span(f"vsx_publish.gallery.{operation}") as span:
            span.set_attribute("vsx_publish.extension_id", extension_id)
            span.set_attribute("http.request.method", method)

            try:
                response = await self._http.request(
                    method, path, params=params, content=content, headers=headers
                )
            except httpx.HTTPError as e:
                self._log.error(
                    "gallery_request_failed",
                    operation=operation,
                    extension_id=extension_id,
                    error=str(e),
                )
                raise GalleryError(f"Gallery request failed: {e}") from e

            span.set_attribute("http.response.status_code", response.status_code)

            if response.status_code == 404:
                self._log.debug(
                    "gallery_extension_not_found", operation=operation, extension_id=extension_id
                )
                raise ExtensionNotFoundError(extension_id, _error_message(response))

            if response.is_error:
                self._log.error(
                    "gallery_request_failed",
                    operation=operation,
                    extension_id=extension_id,
                    status_code=response.status_code,
                )
                raise GalleryError(_error_message(response), status_code=response.status_code)

            self._log.debug(
                "gallery_request_completed",
                operation=operation,
                extension_id=extension_id,
                status_code=response.status_code,
            )
            return response

    def _upload_headers(self, stream: BinaryIO) -> dict[str, str]:
        headers = {"Content-Type": "application/octet-stream"}
        try:
            headers["Content-Length"] = str(os.fstat(stream.fileno()).st_size - stream.tell())
        except (AttributeError, OSError, ValueError):
            pass  # unsized streams are sent chunked
        return headers

    async def get_extension(
        self,
        publisher: str,
        name: str,
        flags: ExtensionQueryFlags = ExtensionQueryFlags.NONE,
    ) -> PublishedExtension:
        """Fetch a listing.

        Raises:
            ExtensionNotFoundError: If the listing does not exist.
            GalleryError: On any other failure.
        """
        params = {"flags": int(flags)} if flags else None
        response = await self._request(
            "get_extension",
            "GET",
            _extension_path(publisher, name),
            extension_id=f"{publisher}.{name}",
            params=params,
        )
        try:
            return PublishedExtension.model_validate(response.json())
        except ValueError as e:
            raise GalleryError(
                f"Unexpected gallery response for {publisher}.{name}: {e}",
                status_code=response.status_code,
            ) from e

    async def create_extension(self, stream: BinaryIO, *, extension_id: str = "") -> None:
        """Upload a package as a new listing."""
        await self._request(
            "create_extension",
            "POST",
            "extensions",
            extension_id=extension_id,
            content=_iter_chunks(stream),
            headers=self._upload_headers(stream),
        )

    async def update_extension(self, stream: BinaryIO, publisher: str, name: str) -> None:
        """Upload a package as a new version of an existing listing."""
        await self._request(
            "update_extension",
            "PUT",
            _extension_path(publisher, name),
            extension_id=f"{publisher}.{name}",
            content=_iter_chunks(stream),
            headers=self._upload_headers(stream),
        )

    async def update_extension_properties(
        self,
        publisher: str,
        name: str,
        flags: PublishedExtensionFlags,
    ) -> None:
        """Rewrite the flags of a listing."""
        await self._request(
            "update_extension_properties",
            "PATCH",
            _extension_path(publisher, name),
            extension_id=f"{publisher}.{name}",
            params={"flags": int(flags)},
        )

    async def delete_extension(self, publisher: str, name: str) -> None:
        """Delete a listing and all of its versions."""
        await self._request(
            "delete_extension",
            "DELETE",
            _extension_path(publisher, name),
            extension_id=f"{publisher}.{name}",
        )


__all__: list[str] = [
    "ExtensionQueryFlags",
    "ExtensionVersion",
    "GalleryClient",
    "PublishedExtension",
    "PublishedExtensionFlags",
    "PublisherRef",
    "get_published_url",
]
