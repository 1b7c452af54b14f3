from __future__ import annotations

from typing import Any, Awaitable, Callable

from aiogram.types import Message

from chatid_bot.core.logging import get_logger

logger = get_logger(__name__)

NextHandler = Callable[[], Awaitable[None]]
CommandHandler = Callable[[Message], Awaitable[Any]]
CommandMiddleware = Callable[[Message, NextHandler], Awaitable[None]]


async def safe_answer(message: Message, text: str, *, purpose: str) -> bool:
    """Reply to the message, logging instead of raising if Telegram refuses."""

    try:
        await message.answer(text)
    except Exception as exc:
        chat = getattr(message, "chat", None)
        user = getattr(message, "from_user", None)
        logger.error(
            "reply_failed",
            purpose=purpose,
            error=str(exc),
            chat_id=getattr(chat, "id", None),
            chat_type=getattr(chat, "type", None),
            user_id=getattr(user, "id", None),
        )
        return False
    return True
