"""
Pytest fixtures and configuration for tea importer tests.

=============================================================================
Test Classification
=============================================================================

Primary Markers:
- @pytest.mark.unit: Single class/function, no external dependencies
  - Fast (<1s per test)
  - Browser and network fully mocked
  - DEFAULT: Tests without marker are auto-classified as unit

- @pytest.mark.integration: Multiple components wired together, browser mocked
  - Guard, session, fetcher, extractor, and orchestrator exercised as a unit

- @pytest.mark.e2e: Real Chromium and network access
  - DEFAULT EXCLUDED: set TEA_IMPORT_RUN_E2E=1 to run
  - Requires `playwright install chromium`

=============================================================================
Mock Strategy
=============================================================================

The browser is replaced by FakeBrowser / FakeContext / FakePage, which
mirror the slice of the Playwright async API the importer uses
(new_context, new_page, route, goto, content, evaluate, close,
is_connected, on("disconnected")).
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

PROJECT_ROOT = Path(__file__).parent.parent

_RUN_E2E = os.environ.get("TEA_IMPORT_RUN_E2E", "0") == "1"


def pytest_configure(config):
    """Register custom markers for test classification."""
    config.addinivalue_line(
        "markers", "unit: Unit tests with no external dependencies (fast, <1s/test)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests with mocked browser (<5s/test)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring real Chromium (excluded by default)"
    )


def pytest_collection_modifyitems(config, items):
    """
    Auto-apply markers and skip tests based on environment.

    Tests without explicit markers are assumed to be unit tests.
    E2E tests are skipped unless TEA_IMPORT_RUN_E2E=1.
    """
    skip_e2e = pytest.mark.skip(reason="E2E tests disabled. Run with TEA_IMPORT_RUN_E2E=1")

    for item in items:
        has_classification = any(
            marker.name in ("unit", "integration", "e2e") for marker in item.iter_markers()
        )
        if not has_classification:
            item.add_marker(pytest.mark.unit)

        if not _RUN_E2E and any(marker.name == "e2e" for marker in item.iter_markers()):
            item.add_marker(skip_e2e)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def route_logs_through_stdlib() -> Generator[None, None, None]:
    """Send structlog output to stdlib logging so stdout stays clean.

    pytest captures stdlib records; CLI tests parse stdout as JSON.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


# =============================================================================
# Global State Reset Fixtures
# =============================================================================


def _reset_globals() -> None:
    from src.crawler import address_guard, page_fetcher
    from src.crawler.browser_session import reset_browser_session
    from src.extractor.tea_extractor import reset_tea_extractor
    from src.importer.orchestrator import reset_import_orchestrator
    from src.utils.config import reset_settings
    from src.utils.logging import clear_context

    reset_settings()
    reset_browser_session()
    page_fetcher.reset_page_fetcher()
    reset_tea_extractor()
    reset_import_orchestrator()
    address_guard._address_guard = None
    clear_context()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Load settings from the repo config dir with no stray env overrides.

    Also resets every process-wide singleton so that asyncio primitives are
    never shared across event loops.
    """
    for key in list(os.environ):
        if key.startswith("TEA_IMPORT_") and key != "TEA_IMPORT_RUN_E2E":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TEA_IMPORT_CONFIG_DIR", str(PROJECT_ROOT / "config"))

    _reset_globals()
    yield
    _reset_globals()


# =============================================================================
# Browser Fakes
# =============================================================================


class FakePage:
    """Stand-in for playwright.async_api.Page."""

    def __init__(
        self,
        html: str = "<html><body></body></html>",
        body_text: str | None = None,
        *,
        goto_error: Exception | None = None,
        status: int = 200,
        final_url: str | None = None,
    ):
        self.html = html
        self.body_text = body_text
        self.url = "about:blank"
        self.goto_calls: list[tuple[str, dict[str, Any]]] = []
        self._goto_error = goto_error
        self._status = status
        self._final_url = final_url

        self.route = AsyncMock()
        self.content = AsyncMock(side_effect=lambda: self.html)
        self.evaluate = AsyncMock(side_effect=self._evaluate)

    async def _evaluate(self, script: str) -> str:
        if self.body_text is None:
            raise RuntimeError("evaluate not supported")
        return self.body_text

    async def goto(self, url: str, **kwargs: Any) -> MagicMock | None:
        self.goto_calls.append((url, kwargs))
        if self._goto_error is not None:
            raise self._goto_error
        self.url = self._final_url or url
        response = MagicMock()
        response.status = self._status
        return response


class FakeContext:
    """Stand-in for playwright.async_api.BrowserContext."""

    def __init__(self, page: FakePage, *, new_page_error: Exception | None = None):
        self.page = page
        self.closed = False
        self._new_page_error = new_page_error
        self.close = AsyncMock(side_effect=self._close)

    async def new_page(self) -> FakePage:
        if self._new_page_error is not None:
            raise self._new_page_error
        return self.page

    async def _close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Stand-in for playwright.async_api.Browser.

    Every new_context() call builds a fresh FakeContext around the page
    returned by page_factory, so concurrent fetches never share a page.
    """

    def __init__(
        self,
        page_factory: Callable[[], FakePage] | None = None,
        *,
        context_error: Exception | None = None,
    ):
        self._page_factory = page_factory or FakePage
        self._context_error = context_error
        self.contexts: list[FakeContext] = []
        self.context_kwargs: list[dict[str, Any]] = []
        self.handlers: dict[str, list[Callable[..., Any]]] = {}
        self.connected = True
        self.close = AsyncMock(side_effect=self._close)

    async def new_context(self, **kwargs: Any) -> FakeContext:
        self.context_kwargs.append(kwargs)
        if self._context_error is not None:
            raise self._context_error
        context = FakeContext(self._page_factory())
        self.contexts.append(context)
        return context

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def is_connected(self) -> bool:
        return self.connected

    def disconnect(self, *, notify: bool = True) -> None:
        """Simulate the browser process exiting."""
        self.connected = False
        if notify:
            for handler in self.handlers.get("disconnected", []):
                handler(self)

    async def _close(self) -> None:
        self.connected = False

    @property
    def open_contexts(self) -> list[FakeContext]:
        return [c for c in self.contexts if not c.closed]


@pytest.fixture
def make_page() -> Callable[..., FakePage]:
    """Factory for fake pages."""
    return FakePage


@pytest.fixture
def make_context() -> Callable[..., FakeContext]:
    """Factory for fake contexts (defaults to an empty page)."""

    def _make(page: FakePage | None = None, **kwargs: Any) -> FakeContext:
        return FakeContext(page or FakePage(), **kwargs)

    return _make


@pytest.fixture
def make_browser() -> Callable[..., FakeBrowser]:
    """Factory for fake browsers."""
    return FakeBrowser


# =============================================================================
# Test Data
# =============================================================================


PRODUCT_PAGE_HTML = """
<html>
  <head>
    <meta property="og:image" content="https://cdn.teashop.example/img/longjing.jpg">
    <title>Dragon Well | Tea Shop</title>
  </head>
  <body>
    <h1 class="page-title">Dragon Well Green Tea</h1>
    <div class="info">
      <span class="info-title">Categories</span>
      <a href="/green">Green</a>
    </div>
    <p>Brew at 80C. Steep 30s 45s 60s.</p>
  </body>
</html>
"""


@pytest.fixture
def product_page_html() -> str:
    """Realistic product page with every field present."""
    return PRODUCT_PAGE_HTML
