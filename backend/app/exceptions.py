"""Domain errors raised by the catalog, Drive client and credential layers.

Routes translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all PartsCatalog errors."""

    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Required input is missing or blank."""

    status_code = 400


class AuthError(CatalogError):
    """No usable credential for the request."""

    status_code = 401


class UpstreamError(CatalogError):
    """The Drive API rejected or failed a call."""

    status_code = 500

    def __init__(self, message: str = "", upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class UpstreamListError(UpstreamError):
    """Enumerating the part folders under the root failed."""


class UpstreamTimeoutError(UpstreamError):
    """A Drive call did not complete within the configured timeout."""


class NotFoundError(UpstreamError):
    """The targeted remote file or folder does not exist."""

    status_code = 404
