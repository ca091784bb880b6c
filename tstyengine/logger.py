"""structlog configuration shared by every Tsty module."""

from __future__ import annotations

import logging
import os
import sys

import structlog

_configured = False

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog once for the process.

    ``TSTY_LOG_LEVEL`` picks the level (default ``INFO``) and
    ``TSTY_LOG_FORMAT`` picks the renderer (``console`` or ``json``).
    """
    global _configured
    level_name = (level or os.environ.get("TSTY_LOG_LEVEL", "INFO")).upper()
    fmt = (fmt or os.environ.get("TSTY_LOG_FORMAT", "console")).lower()

    renderer: structlog.typing.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level_name, logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a bound logger tagged with the module name."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name).bind(logger=name)
