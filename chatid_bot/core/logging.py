from __future__ import annotations

import logging
import sys
from typing import Any

import orjson
import structlog

from chatid_bot.core.config import Settings

# aiogram logs every handled update at INFO through the stdlib logger
_NOISY_LOGGERS: dict[str, int] = {
    "aiogram.event": logging.WARNING,
    "aiohttp.access": logging.WARNING,
}


def _orjson_dumps(obj: Any, *, default: Any) -> str:
    return orjson.dumps(obj, default=default).decode("utf-8")


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, stream=sys.stdout, format="%(message)s")
    for name, floor in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_json:
        processors.append(structlog.processors.JSONRenderer(serializer=_orjson_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(environment=settings.environment)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
