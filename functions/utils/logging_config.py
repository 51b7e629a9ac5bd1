"""structlog configuration for ClearDesk functions."""

import logging

import structlog

from config.settings import settings


def configure_logging(level: str = None) -> None:
    """Configure structlog processors once per process.

    JSON lines in deployed functions, the console renderer under the emulator.
    """
    level_name = (level or settings.log_level or "INFO").upper()
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.is_emulator_mode
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )
