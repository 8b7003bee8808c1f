"""
Structured logging setup.
"""
import logging
import sys

import structlog

from api.config import settings


def setup_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Renders JSON lines in production and a readable console format when
    DEBUG is enabled.
    """
    level = logging.DEBUG if settings.DEBUG else getattr(
        logging, settings.API_LOG_LEVEL.upper(), logging.INFO
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.DEBUG
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
