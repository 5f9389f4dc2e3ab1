"""
Centralized logging configuration.

This module provides a single place to configure logging for the entire application.
Call setup_logging() once at application startup.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlation ID (safe across concurrent requests)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID for request tracking."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set a correlation ID for the current context. Returns the ID set."""
    cid = correlation_id or uuid.uuid4().hex[:12]
    correlation_id_var.set(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to log records."""

    def filter(self, record):
        try:
            record.correlation_id = correlation_id_var.get() or "-"
        except LookupError:
            record.correlation_id = "-"
        return True


def setup_logging(debug_mode: bool = False, log_level: Optional[int] = None, json_output: bool = False) -> None:
    """
    Configure application-wide logging.

    Args:
        debug_mode: If True, set log level to DEBUG (unless log_level is explicitly provided)
        log_level: Explicit log level to use (overrides debug_mode)
        json_output: If True, output logs as one JSON object per line
    """
    if log_level is None:
        log_level = logging.DEBUG if debug_mode else logging.INFO

    if json_output:
        log_format = (
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s",'
            '"correlation_id":"%(correlation_id)s","message":"%(message)s"}'
        )
    else:
        log_format = "%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    # Filters on loggers don't reach records from child loggers; attach to handlers instead
    root_logger = logging.getLogger()
    correlation_filter = CorrelationIdFilter()
    for handler in root_logger.handlers:
        handler.addFilter(correlation_filter)

    # Per-frame debug output from sse_starlette is too chatty even in debug mode
    logging.getLogger("sse_starlette").setLevel(logging.WARNING)
    logging.getLogger("sse_starlette.sse").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger = logging.getLogger("Logging")
    level_name = logging.getLevelName(log_level)
    logger.info(f"Logging configured with level: {level_name}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name for the logger (typically a descriptive component name)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
