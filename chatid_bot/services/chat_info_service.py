from __future__ import annotations

from dataclasses import dataclass
from html import escape

from aiogram.types import Message

from chatid_bot.utils.text import chat_type_label

_TYPE_EMOJI: dict[str, str] = {
    "private": "👤",
    "group": "👥",
    "supergroup": "👥",
    "channel": "📢",
}

_TYPE_HINTS: dict[str, str] = {
    "private": "Это ID вашего личного чата с ботом.",
    "group": "Это Chat ID текущей группы. По нему можно отправлять сообщения в группу.",
    "supergroup": "Это Chat ID текущей супергруппы. По нему можно отправлять сообщения в группу.",
    "channel": "Это Chat ID текущего канала. По нему можно публиковать сообщения в канал.",
}

_TYPE_DETAILS: dict[str, list[str]] = {
    "private": ["🔒 Приватность: личная переписка", "📱 Доступ: только прямые сообщения"],
    "group": ["👥 Тип группы: обычная группа", "📊 Лимит участников: 200"],
    "supergroup": ["👥 Тип группы: супергруппа", "📊 Лимит участников: 200 000", "🔧 Есть администраторы и закрепы"],
    "channel": ["📢 Тип: канал", "📊 Подписчики: без ограничений", "📝 Публикуют только администраторы"],
}


@dataclass(frozen=True, slots=True)
class ChatInfo:
    chat_id: int
    chat_type: str
    title: str | None = None
    username: str | None = None
    member_count: int | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ChatInfoService:
    def get_chat_info(self, message: Message, member_count: int | None = None) -> ChatInfo:
        chat = getattr(message, "chat", None)
        if chat is None:
            raise ValueError("Chat information not available in message")
        return ChatInfo(
            chat_id=chat.id,
            chat_type=chat.type,
            title=getattr(chat, "title", None),
            username=getattr(chat, "username", None),
            member_count=member_count,
            description=getattr(chat, "description", None),
        )

    def format_chat_id(self, info: ChatInfo) -> str:
        emoji = _TYPE_EMOJI.get(info.chat_type, "💬")
        hint = _TYPE_HINTS.get(info.chat_type, "Это Chat ID текущего чата.")
        return (
            f"{emoji} <b>Chat ID</b>\n\n"
            f"🆔 <code>{info.chat_id}</code>\n"
            f"Тип: {chat_type_label(info.chat_type)}\n\n"
            f"💡 {hint}\n\n"
            "🔧 /info покажет подробные сведения о чате."
        )

    def format_chat_info(self, info: ChatInfo) -> str:
        emoji = _TYPE_EMOJI.get(info.chat_type, "💬")
        lines = [
            "📊 <b>Сведения о чате</b>",
            "",
            f"🆔 Chat ID: <code>{info.chat_id}</code>",
            f"{emoji} Тип: {chat_type_label(info.chat_type)}",
        ]
        if info.title:
            lines.append(f"📝 Название: {escape(info.title)}")
        if info.username:
            lines.append(f"🔗 Username: @{escape(info.username)}")
        if info.member_count:
            lines.append(f"👥 Участников: {info.member_count}")
        if info.description:
            lines.append(f"📄 Описание: {escape(info.description)}")

        lines.append("")
        lines.extend(_TYPE_DETAILS.get(info.chat_type, []))
        if info.chat_type == "group" and info.member_count:
            lines.append(f"📈 Заполненность: {round(info.member_count / 200 * 100)}%")

        lines += ["", "🔧 /chatid покажет только Chat ID."]
        return "\n".join(lines)
