"""
Crawler module for tea import.

Provides the SSRF address guard, the shared browser session, and the
per-request page fetcher.
"""

from src.crawler.address_guard import (
    AddressGuard,
    get_address_guard,
    is_private_hostname,
    validate_url,
)
from src.crawler.browser_session import (
    BrowserSession,
    BrowserSessionState,
    SessionEvent,
    close_browser_session,
    get_browser_session,
    reset_browser_session,
)
from src.crawler.page_fetcher import (
    FetchedPage,
    PageFetcher,
    ResourceBlocker,
    get_page_fetcher,
    reset_page_fetcher,
)

__all__ = [
    "AddressGuard",
    "get_address_guard",
    "is_private_hostname",
    "validate_url",
    "BrowserSession",
    "BrowserSessionState",
    "SessionEvent",
    "get_browser_session",
    "close_browser_session",
    "reset_browser_session",
    "FetchedPage",
    "PageFetcher",
    "ResourceBlocker",
    "get_page_fetcher",
    "reset_page_fetcher",
]
