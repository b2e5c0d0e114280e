"""Structured logging configuration.

This module initializes structlog with a stable JSON event format.
Modules log snake_case event names with keyword fields.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure process-wide structured logging.

    Args:
        level: Minimum level name, e.g. ``info``.
    """
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        # resolve stderr per call so redirected streams are honored
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A lazily bound structlog logger.
    """
    return structlog.get_logger(name)


def _level_number(level: str) -> int:
    return logging.getLevelName(level.upper())
