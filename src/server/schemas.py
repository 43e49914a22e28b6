"""
Pydantic schemas for the tea import HTTP API.
"""

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Health Check
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    browser: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Import
# =============================================================================


class ImportRequest(BaseModel):
    """Import request.

    url is untyped; the address guard rejects missing and non-string values.
    """

    url: Any = Field(default=None, description="Product page URL")


class ImportResponse(BaseModel):
    """Extracted tea candidate."""

    name: str = ""
    type: str = ""
    image: str = ""
    steepTimes: list[int] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body for rejected or failed imports."""

    error: str
    error_code: str | None = None
    details: str | None = None
