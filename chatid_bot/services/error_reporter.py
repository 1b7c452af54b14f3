from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramNetworkError,
    TelegramNotFound,
    TelegramRetryAfter,
)
from aiogram.types import Message

from chatid_bot.core.config import Settings
from chatid_bot.core.logging import get_logger
from chatid_bot.telegram.middlewares.types import safe_answer

logger = get_logger(__name__)


@dataclass(frozen=True)
class ErrorContext:
    command: str | None
    chat_id: int | None
    user_id: int | None
    chat_type: str | None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Message | None, command: str | None = None, **metadata: Any) -> ErrorContext:
        chat = getattr(message, "chat", None)
        user = getattr(message, "from_user", None)
        message_id = getattr(message, "message_id", None)
        if message_id is not None:
            metadata.setdefault("message_id", message_id)
        return cls(
            command=command,
            chat_id=getattr(chat, "id", None),
            user_id=getattr(user, "id", None),
            chat_type=getattr(chat, "type", None),
            metadata=metadata,
        )


def user_friendly_message(error: BaseException) -> str:
    if isinstance(error, TelegramAPIError):
        return _telegram_error_message(error)

    text = str(error).lower()
    if "network" in text or "timeout" in text or isinstance(error, TimeoutError):
        return "🔌 Проблемы с сетью. Попробуйте позже."
    if "permission" in text or "forbidden" in text:
        return "❌ У бота недостаточно прав для этого действия. Проверьте настройки прав бота."
    if "rate limit" in text:
        return "⏰ Слишком много запросов. Попробуйте позже."
    return "❌ Не удалось обработать запрос. Попробуйте позже или обратитесь к администратору."


def _telegram_error_message(error: TelegramAPIError) -> str:
    text = str(error).lower()
    if isinstance(error, TelegramForbiddenError) or "bot was blocked" in text:
        return "🚫 Бот заблокирован или не имеет доступа к чату."
    if isinstance(error, TelegramNotFound) or "chat not found" in text:
        return "❌ Указанный чат не найден."
    if isinstance(error, TelegramRetryAfter):
        return f"⏰ Telegram просит подождать {error.retry_after} сек."
    if isinstance(error, TelegramNetworkError):
        return "🔌 Проблемы с сетью. Попробуйте позже."
    if "message is too long" in text:
        return "📝 Сообщение слишком длинное."
    if isinstance(error, TelegramBadRequest):
        return "❌ Некорректный запрос. Проверьте формат команды."
    return "❌ Ошибка Telegram API. Попробуйте позже."


@dataclass(frozen=True)
class ErrorReporter:
    """Logs a failed command and tells the user something safe."""

    settings: Settings | None = None

    async def handle_error(self, message: Message, error: BaseException, context: ErrorContext | None = None) -> None:
        self.log_error(error, context)
        await safe_answer(message, user_friendly_message(error), purpose="error_report")

    def log_error(self, error: BaseException, context: ErrorContext | None = None) -> None:
        fields: dict[str, Any] = {"error": str(error), "error_type": type(error).__name__}
        if context is not None:
            fields.update(
                command=context.command,
                chat_id=context.chat_id,
                user_id=context.user_id,
                chat_type=context.chat_type,
                occurred_at=context.timestamp,
                **context.metadata,
            )
        logger.error("bot_error", exc_info=error, **fields)

    def handle_critical_error(self, error: BaseException, context: str | None = None) -> None:
        logger.critical("critical_error", exc_info=error, error=str(error), context=context)
        if self.settings is not None and self.settings.is_production:
            logger.critical("restart_recommended", reason=str(error))
