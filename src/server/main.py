"""
Tea Import Server - FastAPI Application.
Exposes URL import as POST /api/teas/import for the tea collection UI.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.crawler.browser_session import close_browser_session, get_browser_session
from src.importer.errors import REASON_EMPTY, TeaImportError, error_for_reason
from src.importer.orchestrator import import_tea
from src.server.schemas import ErrorResponse, HealthResponse, ImportRequest, ImportResponse
from src.utils.config import get_settings
from src.utils.logging import ensure_logging_configured, get_logger

logger = get_logger(__name__)

IMPORT_PATH = "/api/teas/import"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    ensure_logging_configured()
    settings = get_settings()
    logger.info("Tea import server starting up", version=settings.general.version)

    if settings.browser.prewarm:
        # Best effort; the first import retries if this fails
        get_browser_session().prewarm()

    yield

    logger.info("Tea import server shutting down")
    await close_browser_session()


app = FastAPI(
    title="Tea Import Server",
    description="Imports tea descriptions from third-party product pages",
    version=get_settings().general.version,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report an unreadable import body as an empty URL."""
    if request.url.path != IMPORT_PATH:
        return await request_validation_exception_handler(request, exc)

    logger.info("Unreadable import request body", errors=len(exc.errors()))
    return JSONResponse(status_code=400, content=error_for_reason(REASON_EMPTY).to_dict())


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", browser=get_browser_session().stats())


# =============================================================================
# Import
# =============================================================================


@app.post(
    IMPORT_PATH,
    response_model=ImportResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def import_from_url(request: ImportRequest | None = None) -> ImportResponse | JSONResponse:
    """Extract a tea candidate from a product page.

    Args:
        request: ImportRequest containing the page URL.

    Returns:
        ImportResponse with name, type, image, and steepTimes, or an error
        body (400 for rejected URLs, 500 for fetch failures).
    """
    url = request.url if request is not None else None

    try:
        candidate = await import_tea(url)
    except TeaImportError as e:
        if e.client_error:
            return JSONResponse(status_code=400, content=e.to_dict())

        logger.error("Scraping error", error_code=e.code.value, details=e.details)
        return JSONResponse(status_code=500, content=e.to_dict())

    return ImportResponse(**candidate.to_dict())
