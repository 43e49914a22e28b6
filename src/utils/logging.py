"""
Structured logging configuration for the tea importer.
Uses structlog for JSON-formatted logs with request-scoped context.
"""

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from src.utils.config import get_project_root, get_settings


def _add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add ISO timestamp to log event."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    return event_dict


def _add_log_level(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Uses settings if None.
        log_file: Path to log file. Uses settings if None.
        json_format: JSON (True) or console (False) rendering. Uses settings if None.
    """
    settings = get_settings()

    if log_level is None:
        log_level = settings.general.log_level

    if json_format is None:
        json_format = settings.general.json_logs

    if log_file is None:
        log_dir = get_project_root() / settings.general.logs_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"tea_import_{datetime.now().strftime('%Y%m%d')}.log"

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
        force=True,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__).

    Returns:
        Configured logger instance.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind context variables."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(import_id="3f2a9c1d", url="https://shop.example/tea"):
            logger.info("Fetching page")
            # All logs within this block carry import_id and url
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        bind_context(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        unbind_context(*self.context.keys())


_logging_configured = False


def ensure_logging_configured() -> None:
    """Ensure logging is configured (call once at startup)."""
    global _logging_configured
    if not _logging_configured:
        configure_logging()
        _logging_configured = True


def truncate_url(url: Any, limit: int = 80) -> str:
    """Shorten a URL for log fields."""
    return str(url)[:limit]
