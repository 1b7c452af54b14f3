"""Built-in command handlers and the bot command menu."""
from __future__ import annotations

from dataclasses import dataclass

from aiogram import Bot
from aiogram.types import BotCommand, Message

from chatid_bot.core.command_registry import CommandRegistry
from chatid_bot.core.logging import get_logger
from chatid_bot.services.chat_info_service import ChatInfoService
from chatid_bot.services.help_service import HelpService

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChatCommands:
    chat_info: ChatInfoService
    help: HelpService

    async def chatid(self, message: Message) -> None:
        info = self.chat_info.get_chat_info(message)
        await message.answer(self.chat_info.format_chat_id(info))

    async def info(self, message: Message) -> None:
        member_count = await self._member_count(message)
        info = self.chat_info.get_chat_info(message, member_count=member_count)
        await message.answer(self.chat_info.format_chat_info(info))

    async def help_command(self, message: Message) -> None:
        await message.answer(self.help.get_help_text())

    async def start(self, message: Message) -> None:
        await message.answer(self.help.get_start_text())
        logger.info(
            "start_command",
            chat_id=message.chat.id,
            chat_type=message.chat.type,
            user_id=getattr(message.from_user, "id", None),
        )

    async def unknown(self, message: Message, command: str | None = None) -> None:
        await message.answer(self.help.get_unknown_command_text(command))
        logger.info(
            "unknown_command",
            command=command,
            chat_id=message.chat.id,
            chat_type=message.chat.type,
            user_id=getattr(message.from_user, "id", None),
        )

    async def _member_count(self, message: Message) -> int | None:
        bot = getattr(message, "bot", None)
        if bot is None or message.chat.type == "private":
            return None
        try:
            return await bot.get_chat_member_count(chat_id=message.chat.id)
        except Exception as exc:
            # /info still answers without the count when the bot may not read members
            logger.info("member_count_unavailable", chat_id=message.chat.id, error=str(exc))
            return None


async def setup_commands(bot: Bot, registry: CommandRegistry) -> None:
    commands = [
        BotCommand(command=registration.name, description=registration.description or registration.name)
        for registration in registry.all_commands()
    ]
    await bot.set_my_commands(commands)
