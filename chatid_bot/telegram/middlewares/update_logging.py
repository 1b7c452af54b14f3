from __future__ import annotations

import time
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from chatid_bot.core.logging import get_logger

logger = get_logger(__name__)


class UpdateLoggingMiddleware(BaseMiddleware):
    """Times every update; failures are logged and re-raised to the error handler."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        started = time.perf_counter()
        fields = {
            "update_id": getattr(event, "update_id", None),
            "update_type": getattr(event, "event_type", None),
        }
        try:
            result = await handler(event, data)
        except Exception as exc:
            logger.error(
                "update_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                **fields,
            )
            raise
        logger.info("update_handled", duration_ms=round((time.perf_counter() - started) * 1000, 2), **fields)
        return result
