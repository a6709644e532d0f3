"""vsx-publish - package, version and publish Visual Studio Marketplace extensions.

This package provides the publishing workflow used by the ``vsx-publish`` CLI:
reading or building a ``.vsix`` package, bumping the extension version, and
creating, updating, unpublishing or deleting the gallery listing.
"""

from __future__ import annotations

__version__ = "0.1.0"
