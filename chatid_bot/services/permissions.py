from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from aiogram import Bot
from aiogram.types import Message

from chatid_bot.core.logging import get_logger

logger = get_logger(__name__)

ALL_CHAT_TYPES: frozenset[str] = frozenset({"private", "group", "supergroup", "channel"})

_GROUP_SEND_STATUSES = frozenset({"member", "administrator", "creator"})
_ADMIN_STATUSES = frozenset({"administrator", "creator"})

SAFE_ERROR_MESSAGES: dict[str, str] = {
    "forbidden": "🚫 Бот не может отправить сообщение. Проверьте, не заблокирован ли бот и есть ли у него права.",
    "not_found": "❌ Указанный чат не найден.",
    "rate_limited": "⏰ Слишком много запросов. Попробуйте позже.",
    "bad_request": "❌ Некорректный запрос. Проверьте формат команды.",
    "configuration": "🔧 Проблема с настройкой бота. Обратитесь к администратору.",
    "generic": "❌ При обработке запроса что-то пошло не так. Попробуйте позже.",
}


class ChatMemberSource(Protocol):
    async def get_chat_member(self, chat_id: int, user_id: int) -> Any: ...

    def get_self_id(self) -> int: ...


@dataclass(frozen=True)
class BotMemberSource:
    bot: Bot

    async def get_chat_member(self, chat_id: int, user_id: int) -> Any:
        return await self.bot.get_chat_member(chat_id=chat_id, user_id=user_id)

    def get_self_id(self) -> int:
        return self.bot.id


@dataclass(frozen=True, slots=True)
class MemberLookup:
    status: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status is not None


def _status_value(status: Any) -> str:
    # aiogram returns ChatMemberStatus (a str enum); fakes may return plain strings
    return str(getattr(status, "value", status))


def _chat_of(message: Message) -> tuple[int | None, str | None]:
    chat = getattr(message, "chat", None)
    if chat is None:
        return None, None
    return getattr(chat, "id", None), getattr(chat, "type", None)


def _sender_id(message: Message) -> int | None:
    user = getattr(message, "from_user", None)
    return getattr(user, "id", None) if user is not None else None


@dataclass(frozen=True)
class PermissionGate:
    """Answers "can the bot post here" and "is this user an admin here".

    Both questions fail closed: any lookup error is logged and read as "no".
    """

    source: ChatMemberSource

    async def lookup_status(self, chat_id: int, user_id: int | None = None) -> MemberLookup:
        try:
            target = self.source.get_self_id() if user_id is None else user_id
            member = await self.source.get_chat_member(chat_id, target)
        except Exception as exc:
            logger.debug("chat_member_lookup_failed", chat_id=chat_id, user_id=user_id, error=str(exc))
            return MemberLookup(error=exc)
        status = getattr(member, "status", None)
        if status is None:
            return MemberLookup(error=LookupError("chat member has no status"))
        return MemberLookup(status=_status_value(status))

    async def bot_has_send_permission(self, message: Message) -> bool:
        chat_id, chat_type = _chat_of(message)
        if chat_id is None or chat_type is None:
            logger.warning("bot_permission_check_missing_chat", chat_id=chat_id, chat_type=chat_type)
            return False

        if chat_type == "private":
            return True

        if chat_type in ("group", "supergroup"):
            allowed = _GROUP_SEND_STATUSES
        elif chat_type == "channel":
            allowed = _ADMIN_STATUSES
        else:
            logger.warning("unknown_chat_type", chat_id=chat_id, chat_type=chat_type)
            return False

        result = await self.lookup_status(chat_id)
        if not result.ok:
            logger.error(
                "bot_permission_check_failed",
                chat_id=chat_id,
                chat_type=chat_type,
                error=str(result.error),
            )
            return False

        has_permission = result.status in allowed
        if not has_permission:
            logger.warning(
                "bot_permission_insufficient",
                chat_id=chat_id,
                chat_type=chat_type,
                bot_status=result.status,
                required_statuses=sorted(allowed),
            )
        return has_permission

    async def user_is_admin(self, message: Message, target_user_id: int | None = None) -> bool:
        chat_id, chat_type = _chat_of(message)
        user_id = target_user_id if target_user_id is not None else _sender_id(message)
        if user_id is None or chat_id is None or chat_type is None:
            return False

        if chat_type == "private":
            return True

        result = await self.lookup_status(chat_id, user_id)
        if not result.ok:
            logger.error(
                "admin_permission_check_failed",
                chat_id=chat_id,
                user_id=user_id,
                error=str(result.error),
            )
            return False

        is_admin = result.status in _ADMIN_STATUSES
        logger.debug(
            "admin_permission_checked",
            chat_id=chat_id,
            chat_type=chat_type,
            user_id=user_id,
            user_status=result.status,
            is_admin=is_admin,
        )
        return is_admin

    def validate_chat_type(self, message: Message, allowed_types: frozenset[str] | None = None) -> bool:
        chat_id, chat_type = _chat_of(message)
        if chat_type is None:
            logger.warning("chat_type_missing", chat_id=chat_id)
            return False

        allowed = allowed_types or ALL_CHAT_TYPES
        is_allowed = chat_type in allowed
        if not is_allowed:
            logger.info("chat_type_not_allowed", chat_id=chat_id, chat_type=chat_type, allowed_types=sorted(allowed))
        return is_allowed

    def sanitize_error(self, error: BaseException, message: Message) -> str:
        text = str(error).lower()

        if "forbidden" in text or "bot was blocked" in text:
            return SAFE_ERROR_MESSAGES["forbidden"]
        if "chat not found" in text or "not found" in text:
            return SAFE_ERROR_MESSAGES["not_found"]
        if "too many requests" in text or "rate limit" in text:
            return SAFE_ERROR_MESSAGES["rate_limited"]
        if "bad request" in text:
            return SAFE_ERROR_MESSAGES["bad_request"]
        if "unauthorized" in text or "token" in text:
            chat_id, _ = _chat_of(message)
            logger.error("bot_token_issue", error=str(error), chat_id=chat_id)
            return SAFE_ERROR_MESSAGES["configuration"]

        return SAFE_ERROR_MESSAGES["generic"]
