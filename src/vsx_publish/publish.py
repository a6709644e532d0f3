"""Publish, unpublish and delete workflows.

Each workflow is a single sequence of awaited steps; the first failing step
ends the workflow and its error reaches the caller. Nothing is retried and no
step runs in parallel with another.

Publish:
    1. Read the manifest of a pre-built package, or bump the version and
       build a fresh package into a temporary file.
    2. Refuse extensions using the proposed API (unless ``no_verify``).
    3. Resolve the publisher's personal access token.
    4. Fetch the listing with its version history, refuse a duplicate version,
       then create or update the listing with the package contents.

Unpublish:
    Resolve identity and token, then set the ``Unpublished`` flag on the listing.

Delete:
    Resolve identity, confirm interactively, then delete the listing.

Example:
    >>> service = PublishService(get_settings())
    >>> await service.publish(PublishOptions(version="patch"))
"""

from __future__ import annotations

import asyncio
import tempfile
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog
import typer

from vsx_publish.config import PublishOptions, PublishSettings
from vsx_publish.errors import (
    EXPIRED_PAT_HINT,
    AbortedError,
    ConfigurationConflictError,
    ExtensionAlreadyExistsError,
    ExtensionNotFoundError,
    GalleryError,
    InvalidExtensionIdError,
    PackageReadError,
    PolicyViolationError,
    VsxPublishError,
)
from vsx_publish.gallery import (
    ExtensionQueryFlags,
    GalleryClient,
    PublishedExtensionFlags,
    get_published_url,
)
from vsx_publish.manifest import Manifest, read_manifest, read_manifest_from_package
from vsx_publish.output import info, success
from vsx_publish.packager import PackageResult, Packager, VsceCliPackager
from vsx_publish.store import CredentialProvider, create_credential_provider
from vsx_publish.telemetry import tracer
from vsx_publish.versioning import version_bump

logger = structlog.get_logger(__name__)

INVALID_RESOURCE_MARKER = "Invalid Resource"
"""Text of the gallery's generic error for requests made with a stale PAT."""

GalleryFactory = Callable[[str], GalleryClient]
Prompt = Callable[[str], Awaitable[str]]


async def read_answer(message: str) -> str:
    """Ask a question on the terminal and return the raw answer.

    End of input or an interrupted prompt counts as an empty answer.
    """
    try:
        answer: str = await asyncio.to_thread(
            typer.prompt, message, default="", show_default=False, prompt_suffix=""
        )
    except typer.Abort:
        return ""
    return answer


def parse_extension_id(extension_id: str) -> tuple[str, str]:
    """Split ``publisher.name`` into its parts.

    Raises:
        InvalidExtensionIdError: If either part is missing.
    """
    publisher, sep, name = extension_id.partition(".")
    if not sep or not publisher or not name:
        raise InvalidExtensionIdError(extension_id)
    return publisher, name


def _temporary_package_path() -> Path:
    return Path(tempfile.gettempdir()) / f"vsx-publish-{uuid.uuid4().hex}.vsix"


def _append_hint(error: Exception, hint: str) -> None:
    error.args = (f"{error}\n\n{hint}", *error.args[1:])


class PublishService:
    """Runs the publishing workflows against the gallery.

    Collaborators are injected so each can be replaced; defaults are built
    from the settings.

    Args:
        settings: Workflow settings.
        credentials: Credential provider for publishers without an explicit PAT.
        packager: Package builder used when no package path is given.
        gallery_factory: Callable returning a GalleryClient for a PAT.
        prompt: Async callable asking the user a question.
    """

    def __init__(
        self,
        settings: PublishSettings,
        *,
        credentials: CredentialProvider | None = None,
        packager: Packager | None = None,
        gallery_factory: GalleryFactory | None = None,
        prompt: Prompt | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials or create_credential_provider(settings)
        self._packager = packager or VsceCliPackager(settings.vsce_command)
        self._gallery_factory = gallery_factory or (lambda pat: GalleryClient(pat, settings))
        self._prompt = prompt or read_answer

    def _resolve_pat(self, options: PublishOptions, publisher: str) -> str:
        if options.pat is not None:
            return options.pat.get_secret_value()
        return self._credentials.get_publisher(publisher).pat.get_secret_value()

    def _resolve_identity(self, options: PublishOptions) -> tuple[str, str]:
        if options.id:
            return parse_extension_id(options.id)
        manifest = read_manifest(options.cwd)
        return manifest.publisher, manifest.name

    async def publish(self, options: PublishOptions) -> None:
        """Publish an extension, building its package unless one is given.

        Raises:
            ConfigurationConflictError: If both package_path and version are set.
            PolicyViolationError: If the extension uses the proposed API.
            ExtensionAlreadyExistsError: If the version is already published.
            VsxPublishError: For any other failing step.
        """
        if options.package_path is not None and options.version:
            raise ConfigurationConflictError("packagePath", "version")

        temporary_path: Path | None = None
        try:
            if options.package_path is not None:
                package = PackageResult(
                    manifest=read_manifest_from_package(options.package_path),
                    package_path=options.package_path,
                )
            else:
                await version_bump(
                    options.cwd, options.version, npm_command=self._settings.npm_command
                )
                temporary_path = _temporary_package_path()
                package = await self._packager.pack(
                    temporary_path,
                    cwd=options.cwd,
                    base_content_url=options.base_content_url,
                    base_images_url=options.base_images_url,
                    use_yarn=options.use_yarn,
                )

            manifest = package.manifest
            if not options.no_verify and manifest.enable_proposed_api:
                raise PolicyViolationError(
                    "Extensions using proposed API (enableProposedApi: true) "
                    "can't be published to the Marketplace"
                )

            pat = self._resolve_pat(options, manifest.publisher)
            await self._publish(package.package_path, pat, manifest)
        finally:
            if temporary_path is not None:
                temporary_path.unlink(missing_ok=True)

    async def _publish(self, package_path: Path, pat: str, manifest: Manifest) -> None:
        """Create or update the listing with the package contents.

        The package file stays open for the duration of the upload and is
        closed on every exit path.

        Raises:
            ExtensionAlreadyExistsError: If the version is already published or
                the gallery reports a conflict.
            PackageReadError: If the package file cannot be opened.
            GalleryError: For any other gallery failure. Messages matching the
                gallery's "Invalid Resource" error get expired-PAT guidance.
        """
        publisher, name = manifest.publisher, manifest.name
        extension_id = manifest.extension_id
        full_name = manifest.full_name
        log = logger.bind(extension=full_name)
        info(f"Publishing {full_name}...")

        with tracer.start_as_current_span("vsx_publish.publish") as span:
            span.set_attribute("vsx_publish.extension_id", extension_id)
            span.set_attribute("vsx_publish.version", manifest.version)

            try:
                try:
                    stream = package_path.open("rb")
                except OSError as e:
                    raise PackageReadError(str(package_path), str(e)) from e

                with stream:
                    async with self._gallery_factory(pat) as gallery:
                        try:
                            extension = await gallery.get_extension(
                                publisher, name, flags=ExtensionQueryFlags.INCLUDE_VERSIONS
                            )
                        except ExtensionNotFoundError:
                            extension = None

                        if extension is not None and extension.has_version(manifest.version):
                            raise ExtensionAlreadyExistsError(full_name, same_version=True)

                        try:
                            if extension is not None:
                                log.info("extension_update_started")
                                await gallery.update_extension(stream, publisher, name)
                            else:
                                log.info("extension_create_started")
                                await gallery.create_extension(stream, extension_id=extension_id)
                        except GalleryError as e:
                            if e.status_code == 409:
                                raise ExtensionAlreadyExistsError(full_name) from e
                            raise
            except VsxPublishError as e:
                if INVALID_RESOURCE_MARKER in str(e):
                    _append_hint(e, EXPIRED_PAT_HINT)
                log.error("publish_failed", error_type=type(e).__name__)
                raise

        log.info("publish_completed")
        success(
            f"Published {full_name}\n"
            f"Your extension will live at "
            f"{get_published_url(self._settings.marketplace_url, extension_id)} "
            f"(might take a few seconds for it to show up)."
        )

    async def unpublish(self, options: PublishOptions) -> None:
        """Hide a listing by setting its ``Unpublished`` flag.

        Setting the flag on an already unpublished listing is harmless.

        Raises:
            InvalidExtensionIdError: If ``options.id`` is malformed.
            GalleryError: If fetching or updating the listing fails.
        """
        publisher, name = self._resolve_identity(options)
        extension_id = f"{publisher}.{name}"
        pat = self._resolve_pat(options, publisher)

        with tracer.start_as_current_span("vsx_publish.unpublish") as span:
            span.set_attribute("vsx_publish.extension_id", extension_id)
            async with self._gallery_factory(pat) as gallery:
                extension = await gallery.get_extension(publisher, name)
                flags = extension.extension_flags | PublishedExtensionFlags.UNPUBLISHED
                await gallery.update_extension_properties(publisher, name, flags)

        logger.info("unpublish_completed", extension=extension_id)
        success(f"Unpublished extension: {extension_id}!")

    async def delete(self, options: PublishOptions) -> None:
        """Delete a listing after interactive confirmation.

        The credential is only resolved once the user has confirmed.

        Raises:
            AbortedError: If the answer is anything other than ``y``/``Y``.
            InvalidExtensionIdError: If ``options.id`` is malformed.
            GalleryError: If the delete call fails.
        """
        publisher, name = self._resolve_identity(options)
        extension_id = f"{publisher}.{name}"

        answer = await self._prompt(
            f"This will FOREVER delete '{extension_id}'! Are you sure? [y/N] "
        )
        if answer.lower() != "y":
            logger.info("delete_aborted", extension=extension_id)
            raise AbortedError()

        pat = self._resolve_pat(options, publisher)

        with tracer.start_as_current_span("vsx_publish.delete") as span:
            span.set_attribute("vsx_publish.extension_id", extension_id)
            async with self._gallery_factory(pat) as gallery:
                await gallery.delete_extension(publisher, name)

        logger.info("delete_completed", extension=extension_id)
        success(f"Deleted extension: {extension_id}!")


__all__: list[str] = [
    "INVALID_RESOURCE_MARKER",
    "PublishService",
    "parse_extension_id",
    "read_answer",
]
