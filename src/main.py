"""
Main entry point for the tea importer.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.crawler.browser_session import close_browser_session
from src.importer.errors import TeaImportError
from src.importer.orchestrator import import_tea
from src.utils.config import get_settings
from src.utils.logging import configure_logging, get_logger


def initialize() -> None:
    """Initialize the application."""
    settings = get_settings()
    configure_logging(log_level=settings.general.log_level)

    logger = get_logger(__name__)
    logger.info(
        "Tea importer initializing",
        version=settings.general.version,
        log_level=settings.general.log_level,
    )


async def run_import(url: str, draft: bool = False) -> int:
    """Import one URL and print the result as JSON.

    Args:
        url: Product page URL.
        draft: Print the pre-filled tea form instead of the raw candidate.

    Returns:
        Process exit code.
    """
    logger = get_logger(__name__)

    try:
        candidate = await import_tea(url)
    except TeaImportError as e:
        logger.error("Import failed", error_code=e.code.value, details=e.details)
        print(json.dumps(e.to_dict(), ensure_ascii=False, indent=2))
        return 1
    finally:
        await close_browser_session()

    if draft:
        payload = candidate.to_draft(website=url).model_dump(mode="json")
    else:
        payload = candidate.to_dict()
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.server.main:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_config=None,
    )


def main() -> None:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Tea importer - pre-fill tea records from product pages"
    )
    parser.add_argument(
        "command",
        choices=["import", "serve"],
        help="Command to run",
    )
    parser.add_argument(
        "--url", "-u",
        type=str,
        help="Product page URL (for 'import' command)",
    )
    parser.add_argument(
        "--draft",
        action="store_true",
        help="Print the pre-filled tea form instead of the extraction result",
    )
    parser.add_argument("--host", type=str, help="Bind address (for 'serve' command)")
    parser.add_argument("--port", type=int, help="Bind port (for 'serve' command)")

    args = parser.parse_args()

    initialize()

    if args.command == "serve":
        run_server(args.host, args.port)
        return

    if not args.url:
        print("Error: --url is required for import command")
        sys.exit(2)

    sys.exit(asyncio.run(run_import(args.url, draft=args.draft)))


if __name__ == "__main__":
    main()
