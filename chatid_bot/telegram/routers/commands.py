from __future__ import annotations

from aiogram import F, Router
from aiogram.types import Message

from chatid_bot.telegram.command_router import CommandRouter


def router(command_router: CommandRouter) -> Router:
    r = Router(name="commands")

    @r.message(F.text.startswith("/"))
    async def on_command(message: Message) -> None:
        await command_router.route(message)

    @r.channel_post(F.text.startswith("/"))
    async def on_channel_command(message: Message) -> None:
        await command_router.route(message)

    return r
