"""
Data model for URL import.

ExtractionCandidate is a best-effort record: every field is independently
optional and carries the name of the strategy that produced it. TeaDraft is
the pre-filled form handed to the tea record collaborator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.importer.errors import TeaImportError, error_for_reason


class TeaType(str, Enum):
    """Tea categories recognised by the extractor (order is significant)."""

    GREEN = "Green"
    BLACK = "Black"
    PU_ER = "PuEr"
    YELLOW = "Yellow"
    WHITE = "White"
    OOLONG = "Oolong"


class CaffeineLevel(str, Enum):
    NONE = "None"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ExtractionStrategy(str, Enum):
    """Which heuristic produced a field value."""

    PAGE_TITLE = "page_title"
    HEADING = "heading"
    OG_IMAGE = "og_image"
    GALLERY_IMAGE = "gallery_image"
    CATEGORIES = "categories"
    NAME_COOCCURRENCE = "name_cooccurrence"
    BODY_SECONDS = "body_seconds"
    DEFAULT = "default"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of address guard validation.

    Attributes:
        valid: Whether the URL may be fetched.
        reason: Rejection reason, None when valid.
    """

    valid: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)

    def to_error(self) -> "TeaImportError":
        """Typed error for a rejected result.

        Raises:
            ValueError: If the result is valid.
        """
        if self.valid or self.reason is None:
            raise ValueError("Accepted URL has no error")
        return error_for_reason(self.reason)


@dataclass(frozen=True)
class ExtractedField:
    """A single field value tagged with its producing strategy."""

    value: Any
    strategy: ExtractionStrategy


@dataclass
class ExtractionCandidate:
    """
    Best-effort structured description of a tea.

    Attributes:
        name: Product name, empty when not found.
        image_url: Image URL read from markup, empty when not found.
        type: Tea category, None when not found.
        steep_times: Steep durations in seconds, each in (0, 600).
        sources: Field name -> strategy that produced it.
    """

    name: str = ""
    image_url: str = ""
    type: TeaType | None = None
    steep_times: list[int] = field(default_factory=list)
    sources: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_fields(
        cls,
        *,
        name: ExtractedField | None = None,
        image_url: ExtractedField | None = None,
        type: ExtractedField | None = None,
        steep_times: ExtractedField | None = None,
    ) -> "ExtractionCandidate":
        """Assemble a candidate, defaulting every missing field independently."""
        candidate = cls()
        sources: dict[str, str] = {}

        if name is not None:
            candidate.name = name.value
        if image_url is not None:
            candidate.image_url = image_url.value
        if type is not None:
            candidate.type = type.value
        if steep_times is not None:
            candidate.steep_times = list(steep_times.value)

        for key, extracted in (
            ("name", name),
            ("image_url", image_url),
            ("type", type),
            ("steep_times", steep_times),
        ):
            sources[key] = (
                extracted.strategy.value if extracted is not None else ExtractionStrategy.DEFAULT.value
            )

        candidate.sources = sources
        return candidate

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.image_url and self.type and self.steep_times)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape for API responses."""
        return {
            "name": self.name,
            "type": self.type.value if self.type else "",
            "image": self.image_url,
            "steepTimes": list(self.steep_times),
        }

    def to_draft(self, website: str = "") -> "TeaDraft":
        """Build the pre-filled tea form from this candidate.

        Args:
            website: Source URL recorded on the draft.
        """
        return TeaDraft(
            name=self.name,
            type=self.type or TeaType.GREEN,
            image=self.image_url,
            steepTimes=list(self.steep_times),
            website=website,
        )


class TeaDraft(BaseModel):
    """Pre-filled tea form, shaped like the tea record create payload.

    Never persisted here; the tea record collaborator validates and stores it.
    """

    name: str
    type: TeaType
    image: str
    steepTimes: list[int] = Field(default_factory=list)
    caffeine: str = ""
    caffeineLevel: CaffeineLevel = CaffeineLevel.LOW
    website: str = ""
    brewingTemperature: str = ""
    teaWeight: str = ""
    rating: int | None = Field(default=None, ge=1, le=10)
