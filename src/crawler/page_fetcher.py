"""
Per-request page fetching inside the shared browser.

Each fetch gets its own BrowserContext (isolated cookies, cache, and storage)
with a single page. Sub-resource requests in the blocked classes are aborted
so only the document itself is downloaded; scripts never run. Navigation is
bounded by a short timeout, and running out of time is not an error: the
page is used in whatever state it reached.

The context is always closed when the caller is done with it. The shared
browser itself is never closed here.
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.importer.errors import ScrapeError
from src.utils.config import get_settings
from src.utils.logging import get_logger, truncate_url

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Route

logger = get_logger(__name__)


@dataclass
class FetchedPage:
    """
    A loaded page handle owned by one import request.

    Attributes:
        page: Playwright Page, valid until the fetch context exits.
        url: Requested URL.
        final_url: URL the page ended on (after redirects), if known.
        status: HTTP status of the main document, None if no response.
        navigation_timed_out: Navigation did not finish within the timeout.
        navigation_error: Error message if navigation failed otherwise.
        blocked_requests: Count of aborted sub-resource requests.
        elapsed_ms: Time spent creating the context and navigating.
    """

    page: "Page"
    url: str
    final_url: str | None = None
    status: int | None = None
    navigation_timed_out: bool = False
    navigation_error: str | None = None
    blocked_requests: int = 0
    elapsed_ms: float = 0.0


class ResourceBlocker:
    """Route handler aborting requests whose resource type is blocked."""

    def __init__(self, blocked_types: list[str] | frozenset[str]) -> None:
        self.blocked_types = frozenset(blocked_types)
        self.blocked_count = 0
        self.allowed_count = 0

    async def __call__(self, route: "Route") -> None:
        if route.request.resource_type in self.blocked_types:
            self.blocked_count += 1
            await route.abort()
        else:
            self.allowed_count += 1
            await route.continue_()


def _is_timeout(error: Exception) -> bool:
    return isinstance(error, (PlaywrightTimeoutError, TimeoutError))


class PageFetcher:
    """
    Opens isolated, resource-restricted pages in the shared browser.

    Example:
        fetcher = PageFetcher()
        async with fetcher.open(browser, url) as fetched:
            html = await fetched.page.content()
    """

    def __init__(self) -> None:
        self._settings = get_settings()

    async def _new_context(self, browser: "Browser") -> "BrowserContext":
        return await browser.new_context(user_agent=self._settings.browser.user_agent)

    async def _navigate(self, fetched: FetchedPage, timeout: float) -> None:
        """Navigate, recording (not raising) timeouts and navigation errors."""
        browser_settings = self._settings.browser
        try:
            response = await fetched.page.goto(
                fetched.url,
                wait_until=browser_settings.wait_until,
                timeout=int(timeout * 1000),
            )
        except Exception as e:
            if _is_timeout(e):
                fetched.navigation_timed_out = True
                logger.info(
                    "Navigation timeout, proceeding with partial document",
                    url=truncate_url(fetched.url),
                    timeout_seconds=timeout,
                )
            else:
                fetched.navigation_error = str(e)
                logger.info(
                    "Navigation error, proceeding with partial document",
                    url=truncate_url(fetched.url),
                    error=str(e),
                )
            return

        if response is not None:
            fetched.status = response.status
        fetched.final_url = fetched.page.url

    @asynccontextmanager
    async def open(
        self,
        browser: "Browser",
        url: str,
        *,
        timeout: float | None = None,
    ) -> AsyncIterator[FetchedPage]:
        """Open a page for url in a fresh context; close the context on exit.

        Args:
            browser: Shared browser handle.
            url: Already-validated URL to load.
            timeout: Navigation timeout in seconds (settings default if None).

        Yields:
            FetchedPage for the loaded document.

        Raises:
            ScrapeError: If the page context could not be created.
        """
        if timeout is None:
            timeout = self._settings.browser.navigation_timeout

        start_time = time.time()
        context: BrowserContext | None = None
        blocker = ResourceBlocker(self._settings.browser.blocked_resource_types)

        try:
            try:
                context = await self._new_context(browser)
                page = await context.new_page()
                await page.route("**/*", blocker)
            except Exception as e:
                logger.error(
                    "Failed to create page context",
                    url=truncate_url(url),
                    error=str(e),
                )
                raise ScrapeError(f"Could not open page: {e}") from e

            fetched = FetchedPage(page=page, url=url)
            await self._navigate(fetched, timeout)
            fetched.blocked_requests = blocker.blocked_count
            fetched.elapsed_ms = round((time.time() - start_time) * 1000, 1)

            logger.debug(
                "Page loaded",
                url=truncate_url(url),
                status=fetched.status,
                timed_out=fetched.navigation_timed_out,
                elapsed_ms=fetched.elapsed_ms,
            )

            yield fetched
        finally:
            if context is not None:
                await self._close_context(context, url, blocker)

    async def _close_context(
        self,
        context: "BrowserContext",
        url: str,
        blocker: ResourceBlocker,
    ) -> None:
        try:
            await context.close()
        except Exception as e:
            # Release must not mask the request's own outcome
            logger.debug("Context close failed", url=truncate_url(url), error=str(e))
        logger.debug(
            "Page context closed",
            url=truncate_url(url),
            blocked_requests=blocker.blocked_count,
            allowed_requests=blocker.allowed_count,
        )


_page_fetcher: PageFetcher | None = None


def get_page_fetcher() -> PageFetcher:
    """Get or create the global PageFetcher instance."""
    global _page_fetcher
    if _page_fetcher is None:
        _page_fetcher = PageFetcher()
    return _page_fetcher


def reset_page_fetcher() -> None:
    """Reset the global fetcher. For testing only."""
    global _page_fetcher
    _page_fetcher = None


def describe(fetched: FetchedPage) -> dict[str, Any]:
    """Summarize a fetched page for logs and diagnostics."""
    return {
        "url": truncate_url(fetched.url),
        "final_url": truncate_url(fetched.final_url) if fetched.final_url else None,
        "status": fetched.status,
        "navigation_timed_out": fetched.navigation_timed_out,
        "blocked_requests": fetched.blocked_requests,
        "elapsed_ms": fetched.elapsed_ms,
    }
