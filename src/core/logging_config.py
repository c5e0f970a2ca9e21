"""Structured logging configuration.

This module initializes structlog loggers with a stable JSON format
so store, materializer, and engine events stay machine readable.
Events are routed through the standard logging tree.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

_CONFIGURED = False


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured output.
    """
    _configure_structlog()
    return structlog.get_logger(name)


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a stderr handler for command-line runs.

    Library callers keep control of handlers; this is only invoked
    by entry points that own the process.

    Args:
        level: Minimum level to emit.
    """
    logging.basicConfig(level=level, format="%(message)s")


def _configure_structlog() -> None:
    """Configure structlog processors once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True
