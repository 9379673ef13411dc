"""structlog setup for the server and CLI."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# File opened by the last configure_logging call, closed on reconfigure
_log_file_stream: TextIO | None = None


def log_level(name: str) -> int:
    """Numeric level for a level name, INFO if unknown."""
    return _LOG_LEVEL_MAP.get(name.lower(), logging.INFO)


def configure_logging(
    level: str = "info",
    log_file: str | None = None,
    json: bool = False,
) -> None:
    """Configure structured logging to stderr, or to ``log_file`` when given.

    Reconfiguring closes the log file opened by the previous call.
    """
    global _log_file_stream
    if _log_file_stream is not None:
        _log_file_stream.close()
        _log_file_stream = None

    stream: TextIO = sys.stderr
    if log_file:
        stream = _log_file_stream = open(log_file, "a", encoding="utf-8")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if json or log_file
            else structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        # Not cached: a logger bound to a closed file would outlive a reconfigure
        cache_logger_on_first_use=False,
    )
