"""
Structured logging setup.

All modules log through structlog with snake_case event names and keyword
context, e.g. ``logger.info("fare_calculated", total_fare=120000)``.
"""

import logging
import sys
from typing import Optional

import structlog

from logiops.core.config import EnvironmentSettings

_configured = False


def configure_logging(settings: Optional[EnvironmentSettings] = None, force: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger once per process.

    Args:
        settings: Environment settings (log level and renderer choice)
        force: Reconfigure even if logging was already configured
    """
    global _configured
    if _configured and not force:
        return

    settings = settings or EnvironmentSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(**initial_values: object) -> structlog.BoundLogger:
    """Return a bound structlog logger with the given context."""
    return structlog.get_logger(**initial_values)
