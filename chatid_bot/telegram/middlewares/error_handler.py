from __future__ import annotations

from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Update

from chatid_bot.services.error_reporter import ErrorContext, ErrorReporter


class ErrorHandlerMiddleware(BaseMiddleware):
    """Last-resort catch for update handlers that live outside the command router."""

    def __init__(self, reporter: ErrorReporter) -> None:
        self.reporter = reporter

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception as exc:
            update_id = getattr(event, "update_id", None)
            message = event.message if isinstance(event, Update) else None
            context = ErrorContext.from_message(message, update_id=update_id, update_type=getattr(event, "event_type", None))
            if message is not None:
                await self.reporter.handle_error(message, exc, context)
            else:
                self.reporter.log_error(exc, context)
            return None
