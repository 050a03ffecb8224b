"""Utility helpers for configuring structlog logging."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

from .config import LoggingConfig


def configure_logging(settings: LoggingConfig) -> None:
    """Configure structlog on top of the stdlib logging handlers.

    Parameters
    ----------
    settings:
        Logging section of the application configuration. ``json_output``
        selects JSON rendering, otherwise events are rendered as key/value
        pairs. ``log_file`` adds a file handler next to stdout.
    """

    level = getattr(logging, settings.level.upper(), logging.INFO)
    handlers: list[logging.Handler] = []

    if settings.json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.processors.KeyValueRenderer(key_order=["event", "level"])

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(key="timestamp", fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(level=level, handlers=handlers, format="%(message)s", force=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "weather_tracker") -> structlog.stdlib.BoundLogger:
    """Return a logger bound to the given namespace."""

    return structlog.get_logger(name)


__all__ = ["configure_logging", "get_logger"]
