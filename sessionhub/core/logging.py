"""Logging configuration and setup for the application.

This module configures structlog on top of the standard library logging
module. Console rendering is used in development and test, JSON lines
everywhere else, so the output can be shipped to a log collector as is.
"""

import logging
import sys
from typing import (
    Any,
    List,
)

import structlog

from sessionhub.core.config import (
    Environment,
    settings,
)


def _get_processors(json_output: bool) -> List[Any]:
    """Build the structlog processor chain.

    Args:
        json_output: Whether the final renderer emits JSON

    Returns:
        List[Any]: Ordered processors
    """
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging() -> None:
    """Configure structlog and the root stdlib logger."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    json_output = settings.LOG_FORMAT.lower() == "json" or settings.APP_ENV in (
        Environment.PRODUCTION,
        Environment.STAGING,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=_get_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


setup_logging()

logger = structlog.get_logger("sessionhub")
