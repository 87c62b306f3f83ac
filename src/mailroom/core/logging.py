"""Set up console logging for the watcher, processor and CLI."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
STRUCTURED_FORMAT = (
    "ts={asctime} level={levelname} logger={name} thread={threadName} msg={message}"
)

# observer threads and per-request client logs drown out message flow at INFO
NOISY_LOGGERS = {"watchdog": "WARNING", "httpx": "WARNING", "httpcore": "WARNING"}


def build_logging_config(settings: LoggingSettings) -> dict[str, Any]:
    """Return the ``dictConfig`` mapping for ``settings``.

    Structured output renders each record as ``key=value`` pairs so lines from
    concurrent processing flows can be grepped by logger or thread.
    """
    if settings.structured:
        formatter: dict[str, Any] = {"format": STRUCTURED_FORMAT, "style": "{"}
    else:
        formatter = {"format": PLAIN_FORMAT}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"mailroom": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "mailroom",
                "level": settings.level,
            },
        },
        "loggers": {name: {"level": level} for name, level in NOISY_LOGGERS.items()},
        "root": {"handlers": ["console"], "level": settings.level},
    }


def configure_logging(settings: LoggingSettings) -> None:
    logging.config.dictConfig(build_logging_config(settings))


__all__ = ["build_logging_config", "configure_logging"]
