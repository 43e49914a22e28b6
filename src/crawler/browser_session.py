"""
Shared browser session for page imports.

Owns the single Chromium process used by every import request.

Lifecycle (BrowserSessionState):
- UNINITIALIZED -> STARTING   first acquire() or prewarm()
- STARTING      -> READY      launch succeeded
- STARTING      -> UNINITIALIZED  launch failed (error raised to waiters)
- READY         -> DISCONNECTED   browser process exited
- DISCONNECTED  -> STARTING   next acquire() relaunches

Concurrent acquire() calls while STARTING await the same launch task, so at
most one browser process exists at a time. Disconnect notifications arrive on
an event queue fed by the browser's "disconnected" event and are applied by
a supervisor task (and drained eagerly by acquire()).
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.importer.errors import BrowserLaunchError
from src.utils.config import get_settings
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = get_logger(__name__)


class BrowserSessionState(str, Enum):
    """Shared browser lifecycle states."""

    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    READY = "ready"
    DISCONNECTED = "disconnected"


class SessionEvent(str, Enum):
    """Notifications from the browser process."""

    DISCONNECTED = "disconnected"


_TRANSITIONS: dict[BrowserSessionState, frozenset[BrowserSessionState]] = {
    BrowserSessionState.UNINITIALIZED: frozenset({BrowserSessionState.STARTING}),
    BrowserSessionState.STARTING: frozenset(
        {BrowserSessionState.READY, BrowserSessionState.UNINITIALIZED}
    ),
    BrowserSessionState.READY: frozenset({BrowserSessionState.DISCONNECTED}),
    BrowserSessionState.DISCONNECTED: frozenset({BrowserSessionState.STARTING}),
}

Launcher = Callable[[], Awaitable["Browser"]]


def _retrieve_launch_error(task: asyncio.Task) -> None:
    """Mark a finished launch's error as seen even if every waiter was cancelled."""
    if not task.cancelled():
        task.exception()


class BrowserSession:
    """
    Lazily launched, self-recovering shared browser.

    Example:
        session = get_browser_session()
        browser = await session.acquire()
        context = await browser.new_context()
    """

    def __init__(self, launcher: Launcher | None = None) -> None:
        """Initialize browser session.

        Args:
            launcher: Coroutine function returning a connected Browser.
                      Defaults to launching headless Chromium via Playwright.
        """
        self._settings = get_settings()
        self._launcher: Launcher = launcher or self._launch_chromium
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._state = BrowserSessionState.UNINITIALIZED

        self._lock = asyncio.Lock()
        self._launch_task: asyncio.Task[Browser] | None = None
        self._events: asyncio.Queue[tuple[SessionEvent, Any]] = asyncio.Queue()
        self._supervisor: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

        self._launch_count = 0
        self._failure_count = 0
        self._disconnect_count = 0

    @property
    def state(self) -> BrowserSessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is BrowserSessionState.READY and self._browser is not None

    def _transition(self, new_state: BrowserSessionState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Illegal browser session transition: {self._state.value} -> {new_state.value}"
            )
        logger.debug(
            "Browser session transition",
            from_state=self._state.value,
            to_state=new_state.value,
        )
        self._state = new_state

    # =========================================================================
    # Launch
    # =========================================================================

    async def _launch_chromium(self) -> "Browser":
        """Start Playwright (once) and launch headless Chromium."""
        if self._playwright is None:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            logger.info("Playwright initialized")

        browser_settings = self._settings.browser
        return await self._playwright.chromium.launch(
            headless=browser_settings.headless,
            args=list(browser_settings.launch_args),
        )

    async def _run_launch(self) -> "Browser":
        """Launch the browser; shared by every caller waiting on this launch."""
        start_time = time.time()
        logger.info("Launching browser", attempt=self._launch_count + 1)

        try:
            browser = await self._launcher()
        except Exception as e:
            self._failure_count += 1
            self._launch_task = None
            self._transition(BrowserSessionState.UNINITIALIZED)
            logger.error(
                "Browser launch failed",
                error=str(e),
                failures=self._failure_count,
            )
            raise BrowserLaunchError(str(e)) from e

        self._launch_count += 1
        self._browser = browser
        browser.on("disconnected", self._on_disconnected)
        self._launch_task = None
        self._transition(BrowserSessionState.READY)
        self._ensure_supervisor()

        logger.info(
            "Browser launched",
            elapsed_ms=round((time.time() - start_time) * 1000, 1),
            launches=self._launch_count,
        )
        return browser

    async def acquire(self) -> "Browser":
        """Return the shared browser, launching it if needed.

        Returns:
            Connected Browser handle.

        Raises:
            BrowserLaunchError: If the launch this call waited on failed.
        """
        self._drain_events()
        if self.is_ready:
            assert self._browser is not None
            return self._browser

        async with self._lock:
            self._drain_events()
            if self.is_ready:
                assert self._browser is not None
                return self._browser

            if self._launch_task is None:
                self._transition(BrowserSessionState.STARTING)
                self._launch_task = asyncio.create_task(self._run_launch())
                self._launch_task.add_done_callback(_retrieve_launch_error)
            task = self._launch_task

        # Shielded so one cancelled caller does not abort a launch others await
        return await asyncio.shield(task)

    def prewarm(self) -> asyncio.Task[None]:
        """Start launching in the background. Failures are logged only."""
        task = asyncio.create_task(self._prewarm())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _prewarm(self) -> None:
        try:
            await self.acquire()
            logger.info("Browser pre-warmed")
        except BrowserLaunchError as e:
            logger.warning("Browser pre-warm failed", error=e.details)

    # =========================================================================
    # Disconnect handling
    # =========================================================================

    def _on_disconnected(self, browser: Any) -> None:
        """Playwright "disconnected" callback; forwards to the event queue."""
        self._events.put_nowait((SessionEvent.DISCONNECTED, browser))

    def _ensure_supervisor(self) -> None:
        if self._supervisor is None or self._supervisor.done():
            self._supervisor = asyncio.create_task(self._supervise())

    async def _supervise(self) -> None:
        while True:
            event, browser = await self._events.get()
            self._apply_event(event, browser)

    def _drain_events(self) -> None:
        while True:
            try:
                event, browser = self._events.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._apply_event(event, browser)

        # A browser that died without delivering its event yet
        if self.is_ready and self._browser is not None and not self._browser.is_connected():
            self._apply_event(SessionEvent.DISCONNECTED, self._browser)

    def _apply_event(self, event: SessionEvent, browser: Any) -> None:
        if event is not SessionEvent.DISCONNECTED:
            return
        if browser is not self._browser or self._state is not BrowserSessionState.READY:
            # Stale notification from a browser already replaced or closed
            return

        self._disconnect_count += 1
        self._browser = None
        self._transition(BrowserSessionState.DISCONNECTED)
        logger.warning("Browser disconnected", disconnects=self._disconnect_count)

    # =========================================================================
    # Teardown
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "launches": self._launch_count,
            "launch_failures": self._failure_count,
            "disconnects": self._disconnect_count,
        }

    async def close(self) -> None:
        """Close the browser and stop Playwright (host shutdown)."""
        for task in [self._supervisor, self._launch_task, *self._background]:
            if task is not None and not task.done():
                task.cancel()
        self._supervisor = None
        self._launch_task = None

        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug("Browser close failed", error=str(e))

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed", error=str(e))
            self._playwright = None

        # Teardown, not a lifecycle transition
        self._state = BrowserSessionState.UNINITIALIZED
        logger.info("Browser session closed")


# ============================================================================
# Factory and Global Instance
# ============================================================================

_browser_session: BrowserSession | None = None


def get_browser_session() -> BrowserSession:
    """
    Get or create the global BrowserSession instance.

    Returns:
        BrowserSession instance.
    """
    global _browser_session

    if _browser_session is None:
        _browser_session = BrowserSession()

    return _browser_session


async def close_browser_session() -> None:
    """Close the global BrowserSession instance."""
    global _browser_session

    if _browser_session is not None:
        await _browser_session.close()
        _browser_session = None


def reset_browser_session() -> None:
    """Reset the global session without closing. For testing only."""
    global _browser_session
    _browser_session = None
