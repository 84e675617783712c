"""structlog configuration."""

import logging

import structlog

from storefront.infrastructure.config import settings


def configure_logging() -> None:
    """Configure structlog processors and the log level.

    Called once at application startup. Request-scoped values bound with
    ``structlog.contextvars`` (e.g. ``request_id``) are merged into every
    event.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
