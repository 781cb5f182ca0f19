"""Logging setup.

Services log through the standard library (``logging.getLogger(__name__)``);
the background cleanup scheduler emits structlog key/value events. Both are
filtered at the level configured in Settings.
"""

import logging

import structlog

from tokenguard.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to stdlib logging and structlog."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        msg = f"Unknown LOG_LEVEL: {settings.log_level}"
        raise ValueError(msg)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tokenguard").setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer()
            if settings.environment == "development"
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
