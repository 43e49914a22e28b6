"""
Error definitions for URL import.

Error codes follow the pattern:
- INVALID_* / DISALLOWED_* / PRIVATE_*: Input rejected by the address guard
  (client-side fix needed, message is safe to show verbatim)
- *_FAILURE / *_FAILED: Fetch-side errors (server-side, details for logs)
- NAVIGATION_TIMEOUT: Internal, non-fatal; never raised to callers
"""

from enum import Enum
from typing import Any

# Guard rejection reasons, surfaced verbatim to callers
REASON_EMPTY = "URL cannot be empty"
REASON_INVALID_FORMAT = "Invalid URL format"
REASON_MISSING_HOSTNAME = "Invalid URL format: missing hostname"
REASON_DISALLOWED_PROTOCOL = "Only HTTP/HTTPS URLs are allowed"
REASON_PRIVATE_ADDRESS = "Cannot scrape private/local URLs"


class ImportErrorCode(str, Enum):
    """Error codes for the import operation."""

    INVALID_URL_FORMAT = "INVALID_URL_FORMAT"
    """URL is empty, not a string, unparsable, or has no hostname."""

    DISALLOWED_PROTOCOL = "DISALLOWED_PROTOCOL"
    """Scheme is not http or https."""

    PRIVATE_ADDRESS_REJECTED = "PRIVATE_ADDRESS_REJECTED"
    """Hostname points at loopback, private, or link-local address space."""

    NAVIGATION_TIMEOUT = "NAVIGATION_TIMEOUT"
    """Navigation did not finish in time. Extraction proceeds anyway."""

    BROWSER_LAUNCH_FAILURE = "BROWSER_LAUNCH_FAILURE"
    """Shared browser could not be started. Next request retries the launch."""

    SCRAPE_FAILED = "SCRAPE_FAILED"
    """Page context could not be created or extraction setup failed."""


CLIENT_ERROR_CODES = frozenset(
    {
        ImportErrorCode.INVALID_URL_FORMAT,
        ImportErrorCode.DISALLOWED_PROTOCOL,
        ImportErrorCode.PRIVATE_ADDRESS_REJECTED,
    }
)


class TeaImportError(Exception):
    """
    Base exception for import failures.

    Provides a structured error body for the HTTP API and the CLI.
    """

    def __init__(
        self,
        code: ImportErrorCode,
        message: str,
        *,
        details: str | None = None,
    ):
        """
        Initialize import error.

        Args:
            code: Error code from ImportErrorCode enum.
            message: Human-readable error message.
            details: Optional diagnostic detail (for logs, not end users).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def client_error(self) -> bool:
        """True when the caller supplied a bad URL."""
        return self.code in CLIENT_ERROR_CODES

    def to_dict(self) -> dict[str, Any]:
        """
        Convert error to response format.

        Returns:
            Dictionary suitable for a JSON error response.
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.code.value,
        }

        if self.details:
            result["details"] = self.details

        return result


class InvalidURLFormatError(TeaImportError):
    """Raised for empty, non-string, unparsable, or hostless URLs."""

    def __init__(self, message: str = REASON_INVALID_FORMAT):
        super().__init__(ImportErrorCode.INVALID_URL_FORMAT, message)


class DisallowedProtocolError(TeaImportError):
    """Raised when the scheme is outside http/https."""

    def __init__(self, message: str = REASON_DISALLOWED_PROTOCOL):
        super().__init__(ImportErrorCode.DISALLOWED_PROTOCOL, message)


class PrivateAddressRejectedError(TeaImportError):
    """Raised when the hostname is in private/local address space."""

    def __init__(self, message: str = REASON_PRIVATE_ADDRESS):
        super().__init__(ImportErrorCode.PRIVATE_ADDRESS_REJECTED, message)


class ScrapeError(TeaImportError):
    """Raised when a page could not be fetched for extraction."""

    def __init__(
        self,
        details: str | None = None,
        *,
        code: ImportErrorCode = ImportErrorCode.SCRAPE_FAILED,
        message: str = "Failed to scrape URL",
    ):
        super().__init__(code, message, details=details)


class BrowserLaunchError(ScrapeError):
    """Raised when the shared browser process cannot be launched.

    Fatal for the request that triggered the launch only.
    """

    def __init__(self, details: str | None = None):
        super().__init__(details, code=ImportErrorCode.BROWSER_LAUNCH_FAILURE)


def error_for_reason(reason: str) -> TeaImportError:
    """Map an address guard rejection reason onto its error type.

    Args:
        reason: Reason string from a rejected ValidationResult.

    Returns:
        Matching TeaImportError subclass instance carrying the same message.
    """
    if reason == REASON_DISALLOWED_PROTOCOL:
        return DisallowedProtocolError(reason)
    if reason == REASON_PRIVATE_ADDRESS:
        return PrivateAddressRejectedError(reason)
    return InvalidURLFormatError(reason)
