"""Exception hierarchy for vsx-publish.

All exceptions raised by the publishing workflow inherit from VsxPublishError,
so callers can catch every workflow failure with a single except clause.

Exception Hierarchy:
    VsxPublishError (base)
    ├── ConfigurationConflictError   # Mutually exclusive options given
    ├── UnsupportedOperationError    # Version directive not allowed
    ├── InvalidVersionError          # Malformed explicit version
    ├── InvalidExtensionIdError      # Extension id not in publisher.name form
    ├── PolicyViolationError         # Proposed API extension blocked
    ├── ManifestError
    │   ├── ManifestNotFoundError    # No package.json in project or package
    │   └── ManifestParseError       # package.json is not valid JSON
    ├── PackageReadError             # Package archive cannot be read
    ├── SubprocessError
    │   ├── VersionBumpError         # `npm version` failed
    │   └── PackagingError           # `vsce package` failed
    ├── CredentialError
    │   ├── PublisherNotFoundError   # No PAT known for the publisher
    │   └── CredentialStoreError     # Store file unreadable
    ├── AbortedError                 # User declined confirmation
    └── GalleryError                 # Remote gallery failure
        ├── ExtensionNotFoundError   # HTTP 404
        └── ExtensionAlreadyExistsError  # Duplicate version or HTTP 409

Exit Codes:
    0 - Success
    1 - General error (VsxPublishError, GalleryError)
    2 - Usage error (ConfigurationConflictError, UnsupportedOperationError,
        InvalidVersionError, InvalidExtensionIdError)
    3 - Not found (ManifestNotFoundError, ExtensionNotFoundError)
    4 - Credential error (CredentialError)
    5 - Validation error (PolicyViolationError, ManifestParseError,
        PackageReadError, ExtensionAlreadyExistsError)
    7 - Subprocess failure (VersionBumpError, PackagingError)
    8 - Network or remote service error (GalleryError without status code)
    130 - Aborted by user (AbortedError)

Example:
    >>> from vsx_publish.errors import ExtensionAlreadyExistsError
    >>> raise ExtensionAlreadyExistsError("acme.ext@1.0.0")
    Traceback (most recent call last):
        ...
    ExtensionAlreadyExistsError: acme.ext@1.0.0 already exists.
"""

from __future__ import annotations

EXPIRED_PAT_HINT = (
    "You're likely using an expired Personal Access Token, please get a new PAT.\n"
    "More info: https://aka.ms/vscodepat"
)
"""Guidance appended to gallery errors that look like an expired credential."""


class VsxPublishError(Exception):
    """Base exception for all vsx-publish errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1

    pass


class ConfigurationConflictError(VsxPublishError):
    """Raised when mutually exclusive options are given together."""

    exit_code: int = 2

    def __init__(self, *options: str) -> None:
        self.options = options
        super().__init__(f"Not supported: {' and '.join(options)}.")


class UnsupportedOperationError(VsxPublishError):
    """Raised for version directives this workflow refuses to run.

    Attributes:
        directive: The rejected directive (e.g. ``prerelease``).
    """

    exit_code: int = 2

    def __init__(self, directive: str) -> None:
        self.directive = directive
        super().__init__(f"Not supported: {directive}")


class InvalidVersionError(VsxPublishError):
    """Raised when an explicit version is not a valid semantic version."""

    exit_code: int = 2

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Invalid version {version}")


class InvalidExtensionIdError(VsxPublishError):
    """Raised when an extension id is not of the form ``publisher.name``."""

    exit_code: int = 2

    def __init__(self, extension_id: str) -> None:
        self.extension_id = extension_id
        super().__init__(
            f"Invalid extension id '{extension_id}'. Expected the form 'publisher.name'."
        )


class PolicyViolationError(VsxPublishError):
    """Raised when a manifest is not allowed on this publishing path.

    Extensions declaring ``enableProposedApi: true`` cannot be published to
    the Marketplace. Use ``--noVerify`` to skip the check.
    """

    exit_code: int = 5


class ManifestError(VsxPublishError):
    """Base class for manifest reading failures."""

    exit_code: int = 5


class ManifestNotFoundError(ManifestError):
    """Raised when no extension manifest can be located.

    Attributes:
        source: The project directory or package path that was searched.
    """

    exit_code: int = 3

    def __init__(self, source: str) -> None:
        self.source = source
        super().__init__(f"Manifest not found in {source}")


class ManifestParseError(ManifestError):
    """Raised when the manifest bytes do not parse as a JSON object.

    Attributes:
        source: Where the manifest was read from.
        reason: Parser error description.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid manifest in {source}: {reason}")


class PackageReadError(VsxPublishError):
    """Raised when a package archive cannot be opened or read.

    Attributes:
        package_path: Path to the package archive.
        reason: Description of the I/O failure.
    """

    exit_code: int = 5

    def __init__(self, package_path: str, reason: str) -> None:
        self.package_path = package_path
        self.reason = reason
        super().__init__(f"Cannot read package {package_path}: {reason}")


class SubprocessError(VsxPublishError):
    """Base class for failures of external helper processes.

    Attributes:
        command: The command that was executed (program and arguments).
        returncode: Process exit status, or None if it never ran.
    """

    exit_code: int = 7

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
    ) -> None:
        self.command = command or []
        self.returncode = returncode
        super().__init__(message)


class VersionBumpError(SubprocessError):
    """Raised when the version bump helper fails."""


class PackagingError(SubprocessError):
    """Raised when the external packager fails to produce a package."""


class CredentialError(VsxPublishError):
    """Base class for credential resolution failures."""

    exit_code: int = 4


class PublisherNotFoundError(CredentialError):
    """Raised when no personal access token is known for a publisher.

    Attributes:
        publisher: The publisher whose credential was requested.
    """

    def __init__(self, publisher: str, env_var: str | None = None) -> None:
        self.publisher = publisher
        msg = f"Unknown publisher '{publisher}'."
        msg += "\n\nRemediation:\n"
        if env_var:
            msg += f"  - Set the {env_var} environment variable\n"
        msg += "  - Or pass the token explicitly with --pat"
        super().__init__(msg)


class CredentialStoreError(CredentialError):
    """Raised when the credential store file exists but cannot be used."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read credential store {path}: {reason}")


class AbortedError(VsxPublishError):
    """Raised when the user declines an interactive confirmation."""

    exit_code: int = 130

    def __init__(self) -> None:
        super().__init__("Aborted")


class GalleryError(VsxPublishError):
    """Raised when the remote gallery service rejects or fails a request.

    Attributes:
        status_code: HTTP status returned by the gallery, or None when the
            service could not be reached at all.
    """

    exit_code: int = 1

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is None:
            self.exit_code = 8
        super().__init__(message)


class ExtensionNotFoundError(GalleryError):
    """Raised when the gallery reports that an extension does not exist (404)."""

    exit_code: int = 3

    def __init__(self, extension_id: str, message: str | None = None) -> None:
        self.extension_id = extension_id
        super().__init__(message or f"Extension '{extension_id}' not found", status_code=404)


class ExtensionAlreadyExistsError(GalleryError):
    """Raised when a release identity already exists in the gallery.

    Covers both the client-side duplicate version check and HTTP 409
    responses from create/update.
    """

    exit_code: int = 5

    def __init__(self, full_name: str, *, same_version: bool = False) -> None:
        self.full_name = full_name
        msg = f"{full_name} already exists."
        if same_version:
            msg += " Version number cannot be the same."
        super().__init__(msg, status_code=409)


__all__: list[str] = [
    "EXPIRED_PAT_HINT",
    "AbortedError",
    "ConfigurationConflictError",
    "CredentialError",
    "CredentialStoreError",
    "ExtensionAlreadyExistsError",
    "ExtensionNotFoundError",
    "GalleryError",
    "InvalidExtensionIdError",
    "InvalidVersionError",
    "ManifestError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "PackageReadError",
    "PackagingError",
    "PolicyViolationError",
    "PublisherNotFoundError",
    "SubprocessError",
    "UnsupportedOperationError",
    "VersionBumpError",
    "VsxPublishError",
]
