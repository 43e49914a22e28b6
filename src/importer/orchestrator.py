"""
URL import orchestration.

validate -> acquire shared browser -> open isolated page -> extract -> release

Guard rejections fail before any network access. Launch and page-context
failures fail the current request only. A navigation timeout is not a
failure, and extraction never raises, so any request that gets a page
returns a (possibly partial) candidate.
"""

import time
import uuid
from typing import Any

from src.crawler.address_guard import AddressGuard, get_address_guard
from src.crawler.browser_session import BrowserSession, get_browser_session
from src.crawler.page_fetcher import PageFetcher, describe, get_page_fetcher
from src.extractor.tea_extractor import TeaPageExtractor, get_tea_extractor
from src.importer.errors import ScrapeError, TeaImportError
from src.importer.schemas import ExtractionCandidate
from src.utils.logging import LogContext, get_logger, truncate_url

logger = get_logger(__name__)


class ImportOrchestrator:
    """
    Composes guard, session, fetcher, and extractor into one import call.

    Collaborators default to the process-wide instances; pass them in to
    isolate tests.
    """

    def __init__(
        self,
        *,
        guard: AddressGuard | None = None,
        session: BrowserSession | None = None,
        fetcher: PageFetcher | None = None,
        extractor: TeaPageExtractor | None = None,
    ) -> None:
        self._guard = guard or get_address_guard()
        self._session = session
        self._fetcher = fetcher or get_page_fetcher()
        self._extractor = extractor or get_tea_extractor()

    @property
    def session(self) -> BrowserSession:
        # Resolved lazily so a reset global session is picked up
        return self._session or get_browser_session()

    async def import_url(self, url: Any) -> ExtractionCandidate:
        """Import a tea description from a product page URL.

        Args:
            url: User-supplied URL (any type; non-strings are rejected).

        Returns:
            ExtractionCandidate, complete or partial.

        Raises:
            InvalidURLFormatError: Empty, unparsable, or hostless URL.
            DisallowedProtocolError: Scheme other than http/https.
            PrivateAddressRejectedError: Private or local hostname.
            BrowserLaunchError: Shared browser could not be launched.
            ScrapeError: Page context could not be created.
        """
        import_id = uuid.uuid4().hex[:12]

        with LogContext(import_id=import_id, url=truncate_url(url)):
            result = self._guard.validate(url)
            if not result.valid:
                logger.info("Import rejected", reason=result.reason)
                raise result.to_error()

            start_time = time.time()
            try:
                browser = await self.session.acquire()
                async with self._fetcher.open(browser, url) as fetched:
                    candidate = await self._extractor.extract(fetched.page)
                    page_summary = describe(fetched)
            except TeaImportError:
                raise
            except Exception as e:
                logger.error("Import failed", error=str(e), error_type=type(e).__name__)
                raise ScrapeError(str(e)) from e

            logger.info(
                "Import complete",
                elapsed_ms=round((time.time() - start_time) * 1000, 1),
                complete=candidate.is_complete,
                **page_summary,
            )
            return candidate


_orchestrator: ImportOrchestrator | None = None


def get_import_orchestrator() -> ImportOrchestrator:
    """Get or create the global ImportOrchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ImportOrchestrator()
    return _orchestrator


def reset_import_orchestrator() -> None:
    """Reset the global orchestrator. For testing only."""
    global _orchestrator
    _orchestrator = None


async def import_tea(url: Any) -> ExtractionCandidate:
    """Import a tea from url using the global orchestrator."""
    return await get_import_orchestrator().import_url(url)
