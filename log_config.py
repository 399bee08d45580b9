from __future__ import annotations

import logging
import os

import structlog


def configure_logging(level: str = "") -> None:
    """
    Console logging for the app. Level comes from LOG_LEVEL unless given.
    """
    name = (level or os.getenv("LOG_LEVEL", "") or "INFO").strip().upper()
    numeric = getattr(logging, name, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        cache_logger_on_first_use=True,
    )
