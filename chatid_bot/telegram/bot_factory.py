from __future__ import annotations

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from chatid_bot.core.config import Settings


def build_bot(settings: Settings) -> Bot:
    # every reply template is HTML; dynamic values are escaped where they are formatted
    return Bot(
        token=settings.bot_token.get_secret_value(),
        default=DefaultBotProperties(parse_mode=ParseMode.HTML, link_preview_is_disabled=True),
    )
