"""
Tea import module.

Turns a third-party product page URL into a pre-filled tea description.
The entry point lives in src.importer.orchestrator (import_tea).
"""

from src.importer.errors import (
    BrowserLaunchError,
    DisallowedProtocolError,
    ImportErrorCode,
    InvalidURLFormatError,
    PrivateAddressRejectedError,
    ScrapeError,
    TeaImportError,
)
from src.importer.schemas import (
    ExtractedField,
    ExtractionCandidate,
    ExtractionStrategy,
    TeaDraft,
    TeaType,
    ValidationResult,
)

__all__ = [
    # Errors
    "ImportErrorCode",
    "TeaImportError",
    "InvalidURLFormatError",
    "DisallowedProtocolError",
    "PrivateAddressRejectedError",
    "ScrapeError",
    "BrowserLaunchError",
    # Data model
    "ExtractedField",
    "ExtractionCandidate",
    "ExtractionStrategy",
    "TeaDraft",
    "TeaType",
    "ValidationResult",
]
