from __future__ import annotations

from aiogram import Router
from aiogram.filters import JOIN_TRANSITION, LEAVE_TRANSITION, ChatMemberUpdatedFilter
from aiogram.types import ChatMemberUpdated

from chatid_bot.core.logging import get_logger
from chatid_bot.services.help_service import HelpService

logger = get_logger(__name__)


def _status(event: ChatMemberUpdated) -> str:
    status = event.new_chat_member.status
    return str(getattr(status, "value", status))


def router(help_service: HelpService) -> Router:
    r = Router(name="chat_events")

    @r.my_chat_member(ChatMemberUpdatedFilter(member_status_changed=JOIN_TRANSITION))
    async def bot_added(event: ChatMemberUpdated) -> None:
        chat = event.chat
        logger.info(
            "bot_added_to_chat",
            chat_id=chat.id,
            chat_type=chat.type,
            chat_title=chat.title,
            new_status=_status(event),
        )
        if chat.type == "private":
            return
        try:
            await event.bot.send_message(chat.id, help_service.get_welcome_text(chat.type, chat.title))
        except Exception as exc:
            logger.warning("welcome_message_failed", chat_id=chat.id, chat_type=chat.type, error=str(exc))

    @r.my_chat_member(ChatMemberUpdatedFilter(member_status_changed=LEAVE_TRANSITION))
    async def bot_removed(event: ChatMemberUpdated) -> None:
        logger.info(
            "bot_removed_from_chat",
            chat_id=event.chat.id,
            chat_type=event.chat.type,
            chat_title=event.chat.title,
            new_status=_status(event),
        )

    @r.my_chat_member()
    async def bot_status_changed(event: ChatMemberUpdated) -> None:
        if _status(event) == "restricted":
            logger.warning("bot_restricted", chat_id=event.chat.id, chat_type=event.chat.type)

    return r
