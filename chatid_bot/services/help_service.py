from __future__ import annotations

from dataclasses import dataclass
from html import escape

from chatid_bot.core.command_registry import CommandRegistry


@dataclass(frozen=True, slots=True)
class HelpService:
    registry: CommandRegistry

    def get_help_text(self) -> str:
        lines: list[str] = ["🤖 <b>Chat ID Bot: справка</b>", "", "📋 <b>Доступные команды:</b>"]
        for registration in self.registry.all_commands():
            aliases = "".join(f", /{a}" for a in sorted(registration.aliases))
            lines.append(f"/{registration.name}{aliases} — {escape(registration.description)}")

        lines += [
            "",
            "💡 <b>Как пользоваться:</b>",
            "• в группе команды показывают Chat ID и сведения о группе",
            "• в личном чате показывают Chat ID личного чата",
            "• Chat ID нужен, чтобы другие боты и скрипты могли писать в этот чат",
        ]
        return "\n".join(lines)

    def get_start_text(self) -> str:
        return (
            "👋 <b>Добро пожаловать в Chat ID Bot!</b>\n\n"
            "🎯 Бот помогает быстро узнать Chat ID и сведения о чате Telegram.\n\n"
            "🚀 <b>Быстрый старт:</b>\n"
            "1️⃣ /chatid — Chat ID текущего чата\n"
            "2️⃣ /info — подробные сведения о чате\n"
            "3️⃣ /help — все команды\n\n"
            "Добавьте бота в группу, чтобы узнать её Chat ID."
        )

    def get_unknown_command_text(self, command: str | None = None) -> str:
        header = f"❓ <b>Неизвестная команда: /{escape(command)}</b>" if command else "❓ <b>Неизвестная команда</b>"
        return (
            f"{header}\n\n"
            "Используйте /help, чтобы увидеть список доступных команд.\n\n"
            "💡 Команда должна начинаться с «/», например /chatid или /info"
        )

    def get_welcome_text(self, chat_type: str | None, title: str | None = None) -> str:
        if chat_type in ("group", "supergroup"):
            where = escape(title) if title else ("эту супергруппу" if chat_type == "supergroup" else "эту группу")
            return (
                f"🎉 <b>Спасибо, что добавили меня в {where}!</b>\n\n"
                "• /chatid — Chat ID группы\n"
                "• /info — подробные сведения о группе\n"
                "• /help — все команды\n\n"
                "Команды доступны всем участникам."
            )
        return "🤖 <b>Chat ID Bot готов к работе.</b>\n\nОтправьте /help, чтобы увидеть команды."
