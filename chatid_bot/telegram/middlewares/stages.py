from __future__ import annotations

import math
import time
from typing import Callable, Iterable

from aiogram.types import Message

from chatid_bot.core.logging import get_logger
from chatid_bot.telegram.middlewares.types import CommandMiddleware, NextHandler, safe_answer

logger = get_logger(__name__)


def logging_stage() -> CommandMiddleware:
    async def stage(message: Message, next_handler: NextHandler) -> None:
        started = time.perf_counter()
        text = getattr(message, "text", None) or ""
        fields = {
            "command": text.split(" ")[0] if text else None,
            "chat_id": getattr(message.chat, "id", None),
            "chat_type": getattr(message.chat, "type", None),
            "user_id": getattr(getattr(message, "from_user", None), "id", None),
        }
        try:
            await next_handler()
        except Exception as exc:
            logger.error(
                "command_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(exc),
                **fields,
            )
            raise
        logger.info("command_executed", duration_ms=round((time.perf_counter() - started) * 1000, 2), **fields)

    return stage


def rate_limit_stage(
    max_requests: int = 10,
    time_window: float = 60.0,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> CommandMiddleware:
    """Per-user fixed window, without chat limits or penalties."""

    windows: dict[int, tuple[int, float]] = {}

    async def stage(message: Message, next_handler: NextHandler) -> None:
        user = getattr(message, "from_user", None)
        if user is None:
            await next_handler()
            return

        now = clock()
        count, reset_at = windows.get(user.id, (0, 0.0))
        if now >= reset_at:
            windows[user.id] = (1, now + time_window)
            await next_handler()
            return

        if count >= max_requests:
            remaining = math.ceil(reset_at - now)
            await safe_answer(message, f"⚠️ Слишком частые запросы. Подождите {remaining} сек.", purpose="rate_limit")
            return

        windows[user.id] = (count + 1, reset_at)
        await next_handler()

    return stage


def admin_allowlist_stage(admin_user_ids: Iterable[int]) -> CommandMiddleware:
    admins = frozenset(int(uid) for uid in admin_user_ids)

    async def stage(message: Message, next_handler: NextHandler) -> None:
        user = getattr(message, "from_user", None)
        if user is None or user.id not in admins:
            await safe_answer(message, "⛔ Эта команда доступна только администраторам.", purpose="admin_required")
            return
        await next_handler()

    return stage
