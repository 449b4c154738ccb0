"""Structured logging configuration using structlog."""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import BoundLogger

from clinic_analytics.core.config import settings


def configure_logging(json_output: bool | None = None) -> None:
    """Configure structured logging with JSON or console output."""
    if json_output is None:
        json_output = settings.log_json

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.INFO if not settings.debug else logging.DEBUG,
    )


def get_logger(name: str) -> BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def enrich_with_context(logger: BoundLogger, **context: Any) -> BoundLogger:
    """Bind the non-empty context values to the logger."""
    values = {key: value for key, value in context.items() if value is not None}
    if not values:
        return logger
    return logger.bind(**values)

