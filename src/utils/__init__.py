"""
Tea importer utilities module.
"""

from src.utils.config import get_project_root, get_settings, reset_settings
from src.utils.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    ensure_logging_configured,
    get_logger,
    truncate_url,
    unbind_context,
)

__all__ = [
    "get_settings",
    "reset_settings",
    "get_project_root",
    "get_logger",
    "configure_logging",
    "ensure_logging_configured",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "truncate_url",
]
