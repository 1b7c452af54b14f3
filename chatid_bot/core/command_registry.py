from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from chatid_bot.core.errors import CommandRegistrationError
from chatid_bot.telegram.middlewares.types import CommandHandler
from chatid_bot.utils.text import norm_command


@dataclass(frozen=True)
class CommandRegistration:
    name: str
    handler: CommandHandler
    description: str = ""
    aliases: frozenset[str] = field(default_factory=frozenset)
    requires_admin: bool = False
    allowed_chat_types: frozenset[str] = field(default_factory=frozenset)  # empty means every type

    def allows_chat_type(self, chat_type: str | None) -> bool:
        if not self.allowed_chat_types:
            return True
        return chat_type in self.allowed_chat_types


class CommandRegistry:
    """Name -> registration map; every alias is a separate key sharing one registration."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandRegistration] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler | None,
        *,
        description: str = "",
        aliases: Iterable[str] = (),
        requires_admin: bool = False,
        allowed_chat_types: Iterable[str] = (),
    ) -> CommandRegistration:
        canonical = norm_command(name) if name else ""
        if not canonical or handler is None:
            raise CommandRegistrationError("Command name and handler are required for registration")

        alias_names = frozenset(a for a in (norm_command(alias) for alias in aliases) if a and a != canonical)
        registration = CommandRegistration(
            name=canonical,
            handler=handler,
            description=description,
            aliases=alias_names,
            requires_admin=requires_admin,
            allowed_chat_types=frozenset(allowed_chat_types),
        )

        prior = self._commands.get(canonical)
        if prior is not None and prior.name == canonical:
            for stale in prior.aliases:
                if self._commands.get(stale) is prior:
                    del self._commands[stale]

        self._commands[canonical] = registration
        for alias in alias_names:
            self._commands[alias] = registration
        return registration

    def get(self, name: str) -> CommandRegistration | None:
        return self._commands.get(norm_command(name))

    def is_registered(self, name: str) -> bool:
        return norm_command(name) in self._commands

    def all_commands(self) -> list[CommandRegistration]:
        unique: dict[str, CommandRegistration] = {}
        for registration in self._commands.values():
            unique.setdefault(registration.name, registration)
        return sorted(unique.values(), key=lambda c: c.name)

    def __len__(self) -> int:
        return len(self.all_commands())
