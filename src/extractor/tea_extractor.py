"""
Tea product page extraction.

Recovers name, image, tea type, and steep times from arbitrary product
page markup. Each field has its own chain of strategies and degrades to an
empty value on its own; extraction as a whole never raises.

Strategies:
- name: product title selector, then first <h1>
- image: og:image meta tag, then gallery placeholder <img src>
  (the attribute only; image requests are blocked during fetch)
- type: "Categories" info block, then a type named both in the page text
  and in the extracted name
- steep times: "<digits>s" tokens in the visible text, accepted only when
  at least three are present, values outside (0, max) dropped
"""

import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup

from src.importer.schemas import (
    ExtractedField,
    ExtractionCandidate,
    ExtractionStrategy,
    TeaType,
)
from src.utils.config import ExtractionConfig, get_settings
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

STEEP_TOKEN_PATTERN = re.compile(r"([0-9]+)s")

BODY_TEXT_SCRIPT = "() => document.body ? document.body.innerText : ''"

_INVISIBLE_TAGS = ("script", "style", "noscript", "template")


def _visible_text(soup: BeautifulSoup) -> str:
    """Approximate innerText for a parsed document body."""
    root = soup.body or soup
    for tag in root.find_all(_INVISIBLE_TAGS):
        tag.decompose()
    return root.get_text("\n")


class TeaPageExtractor:
    """
    Heuristic extractor for tea product pages.

    Example:
        extractor = TeaPageExtractor()
        candidate = await extractor.extract(page)
        candidate.to_dict()  # {"name": ..., "type": ..., "image": ..., "steepTimes": [...]}
    """

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self._config = config or get_settings().extraction

    # =========================================================================
    # Entry points
    # =========================================================================

    async def extract(self, page: "Page") -> ExtractionCandidate:
        """Extract a candidate from a loaded page. Never raises.

        Args:
            page: Page in whatever state navigation reached.

        Returns:
            ExtractionCandidate, possibly empty.
        """
        html = await self._read_page(page.content, "content")
        body_text = await self._read_page(
            lambda: page.evaluate(BODY_TEXT_SCRIPT), "body_text"
        )
        return self.extract_from_html(html or "", body_text or None)

    def extract_from_html(self, html: str, body_text: str | None = None) -> ExtractionCandidate:
        """Extract a candidate from a DOM snapshot. Never raises.

        Args:
            html: Serialized document.
            body_text: Rendered visible text; derived from html when None.

        Returns:
            ExtractionCandidate, possibly empty.
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            logger.debug("HTML parse failed", error=str(e))
            return ExtractionCandidate.from_fields()

        if body_text is None:
            body_text = self._attempt(_visible_text, BeautifulSoup(html, "html.parser")) or ""

        name = self._attempt(self.extract_name, soup)
        image_url = self._attempt(self.extract_image, soup)
        tea_type = self._attempt(self.extract_type, soup, body_text, name.value if name else "")
        steep_times = self._attempt(self.extract_steep_times, body_text)

        candidate = ExtractionCandidate.from_fields(
            name=name,
            image_url=image_url,
            type=tea_type,
            steep_times=steep_times,
        )

        logger.info(
            "Extraction complete",
            complete=candidate.is_complete,
            sources=candidate.sources,
            steep_time_count=len(candidate.steep_times),
        )
        return candidate

    async def _read_page(
        self,
        reader: Callable[[], Awaitable[Any]],
        what: str,
    ) -> Any:
        try:
            return await reader()
        except Exception as e:
            logger.debug("Page read failed", what=what, error=str(e))
            return None

    def _attempt(self, strategy: Callable[..., Any], *args: Any) -> Any:
        try:
            return strategy(*args)
        except Exception as e:
            logger.debug("Extraction strategy failed", strategy=strategy.__name__, error=str(e))
            return None

    # =========================================================================
    # Field strategies
    # =========================================================================

    def _select_text(self, soup: BeautifulSoup, selector: str) -> str:
        element = soup.select_one(selector)
        if element is None:
            return ""
        return element.get_text().strip()

    def _select_attr(self, soup: BeautifulSoup, selector: str, attr: str) -> str:
        element = soup.select_one(selector)
        if element is None:
            return ""
        value = element.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        return (value or "").strip()

    def extract_name(self, soup: BeautifulSoup) -> ExtractedField | None:
        """Product title, falling back to the first top-level heading."""
        title = self._select_text(soup, self._config.title_selector)
        if title:
            return ExtractedField(title, ExtractionStrategy.PAGE_TITLE)

        heading = self._select_text(soup, self._config.heading_selector)
        if heading:
            return ExtractedField(heading, ExtractionStrategy.HEADING)

        return None

    def extract_image(self, soup: BeautifulSoup) -> ExtractedField | None:
        """Social preview image, falling back to the gallery placeholder src."""
        og_image = self._select_attr(soup, self._config.og_image_selector, "content")
        if og_image:
            return ExtractedField(og_image, ExtractionStrategy.OG_IMAGE)

        gallery = self._select_attr(soup, self._config.gallery_image_selector, "src")
        if gallery:
            return ExtractedField(gallery, ExtractionStrategy.GALLERY_IMAGE)

        return None

    def extract_type(
        self,
        soup: BeautifulSoup,
        body_text: str,
        name: str,
    ) -> ExtractedField | None:
        """Tea type from the Categories block, else by name co-occurrence."""
        categorized = self._type_from_categories(soup)
        if categorized is not None:
            return ExtractedField(categorized, ExtractionStrategy.CATEGORIES)

        for tea_type in TeaType:
            if tea_type.value in body_text and tea_type.value in name:
                return ExtractedField(tea_type, ExtractionStrategy.NAME_COOCCURRENCE)

        return None

    def _type_from_categories(self, soup: BeautifulSoup) -> TeaType | None:
        found: TeaType | None = None
        for title in soup.select(self._config.info_title_selector):
            if self._config.categories_label not in title.get_text():
                continue
            container = title.parent if title.parent is not None else title
            container_text = container.get_text()
            # Last listed type present in the block wins
            for tea_type in TeaType:
                if tea_type.value in container_text:
                    found = tea_type
        return found

    def extract_steep_times(self, body_text: str) -> ExtractedField | None:
        """Seconds tokens from visible text, or None when there are too few."""
        tokens = STEEP_TOKEN_PATTERN.findall(body_text)
        if len(tokens) < self._config.min_steep_tokens:
            return None

        steep_times = [
            seconds
            for seconds in (int(token) for token in tokens)
            if 0 < seconds < self._config.max_steep_seconds
        ]
        if not steep_times:
            return None

        return ExtractedField(steep_times, ExtractionStrategy.BODY_SECONDS)


_extractor: TeaPageExtractor | None = None


def get_tea_extractor() -> TeaPageExtractor:
    """Get or create the global TeaPageExtractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = TeaPageExtractor()
    return _extractor


def reset_tea_extractor() -> None:
    """Reset the global extractor. For testing only."""
    global _extractor
    _extractor = None
