from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError, TelegramNotFound, TelegramRetryAfter
from aiogram.methods import SendMessage

from chatid_bot.core.config import Settings
from chatid_bot.services.error_reporter import ErrorContext, ErrorReporter, user_friendly_message

METHOD = SendMessage(chat_id=1, text="x")


@pytest.mark.parametrize(
    "error, fragment",
    [
        (TelegramForbiddenError(method=METHOD, message="Forbidden: bot was blocked by the user"), "заблокирован"),
        (TelegramNotFound(method=METHOD, message="Not Found"), "не найден"),
        (TelegramRetryAfter(method=METHOD, message="Too Many Requests", retry_after=7), "7 сек"),
        (TelegramBadRequest(method=METHOD, message="Bad Request: message is too long"), "слишком длинное"),
        (TelegramBadRequest(method=METHOD, message="Bad Request: can't parse entities"), "Некорректный запрос"),
        (TimeoutError(), "сетью"),
        (RuntimeError("permission denied"), "недостаточно прав"),
        (RuntimeError("rate limit hit"), "Слишком много запросов"),
        (RuntimeError("whatever"), "Не удалось обработать"),
    ],
)
def test_user_friendly_message(error, fragment):
    assert fragment in user_friendly_message(error)


def test_context_from_message(make_message):
    message = make_message("/info", chat_type="group", chat_id=-5, user_id=9)

    context = ErrorContext.from_message(message, command="info", attempt=2)

    assert context.command == "info"
    assert context.chat_id == -5
    assert context.user_id == 9
    assert context.chat_type == "group"
    assert context.metadata == {"attempt": 2, "message_id": 1}
    assert context.timestamp


def test_context_without_message():
    context = ErrorContext.from_message(None)

    assert context.chat_id is None
    assert context.metadata == {}


@pytest.mark.asyncio
async def test_handle_error_replies_once(make_message):
    message = make_message()

    await ErrorReporter().handle_error(message, RuntimeError("boom"), ErrorContext.from_message(message))

    message.answer.assert_awaited_once()


@pytest.mark.asyncio
async def test_handle_error_survives_failed_reply(make_message):
    message = make_message()
    message.answer = AsyncMock(side_effect=RuntimeError("Forbidden"))

    await ErrorReporter().handle_error(message, RuntimeError("boom"))

    message.answer.assert_awaited_once()


def test_handle_critical_error_in_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")

    ErrorReporter(settings=Settings(_env_file=None)).handle_critical_error(RuntimeError("fatal"), "startup")
