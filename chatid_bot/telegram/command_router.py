from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Iterable

from aiogram.types import Message

from chatid_bot.core.command_registry import CommandRegistration, CommandRegistry
from chatid_bot.core.logging import get_logger
from chatid_bot.services.error_reporter import ErrorContext, ErrorReporter
from chatid_bot.services.permissions import ALL_CHAT_TYPES
from chatid_bot.services.rate_limiter import RateLimitStatistics
from chatid_bot.telegram.commands import ChatCommands
from chatid_bot.telegram.middlewares.security import SecurityMiddleware
from chatid_bot.telegram.middlewares.types import CommandHandler, CommandMiddleware, NextHandler, safe_answer
from chatid_bot.utils.text import extract_command, format_chat_types

logger = get_logger(__name__)


def _build_chain(stages: list[CommandMiddleware], message: Message, handler: CommandHandler) -> NextHandler:
    async def call_handler() -> None:
        await handler(message)

    chain: NextHandler = call_handler
    for stage in reversed(stages):
        chain = partial(stage, message, chain)
    return chain


class CommandRouter:
    """Parses "/command@bot args", finds the registration and runs it through the stage chain.

    The security stage is always installed first; stages added later run after
    it, in the order they were added. ``route`` never raises: whatever escapes
    the chain is handed to the error reporter once.
    """

    def __init__(
        self,
        *,
        registry: CommandRegistry,
        commands: ChatCommands,
        security: SecurityMiddleware,
        error_reporter: ErrorReporter,
    ) -> None:
        self.registry = registry
        self.commands = commands
        self.security = security
        self.error_reporter = error_reporter
        self._middlewares: list[CommandMiddleware] = []
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._register_default_commands()
        self.add_middleware(self.security.create_middleware())

    def _register_default_commands(self) -> None:
        all_types = sorted(ALL_CHAT_TYPES)
        self.register_command(
            "chatid",
            self.commands.chatid,
            description="Chat ID текущего чата",
            aliases=["id"],
            allowed_chat_types=all_types,
        )
        self.register_command(
            "info",
            self.commands.info,
            description="Подробные сведения о чате",
            allowed_chat_types=all_types,
        )
        self.register_command(
            "help",
            self.commands.help_command,
            description="Справка и список команд",
            aliases=["h"],
            allowed_chat_types=all_types,
        )
        self.register_command(
            "start",
            self.commands.start,
            description="Начать работу с ботом",
            allowed_chat_types=all_types,
        )

    def register_command(
        self,
        name: str,
        handler: CommandHandler | None,
        *,
        description: str = "",
        aliases: Iterable[str] = (),
        requires_admin: bool = False,
        allowed_chat_types: Iterable[str] = (),
    ) -> CommandRegistration:
        return self.registry.register(
            name,
            handler,
            description=description,
            aliases=aliases,
            requires_admin=requires_admin,
            allowed_chat_types=allowed_chat_types,
        )

    def add_middleware(self, middleware: CommandMiddleware) -> None:
        self._middlewares.append(middleware)

    def add_security_middleware(self, **overrides: Any) -> None:
        self.add_middleware(self.security.create_middleware(**overrides))

    @property
    def middlewares(self) -> tuple[CommandMiddleware, ...]:
        return tuple(self._middlewares)

    def registered_commands(self) -> list[CommandRegistration]:
        return self.registry.all_commands()

    def is_command_registered(self, name: str) -> bool:
        return self.registry.is_registered(name)

    def security_statistics(self) -> RateLimitStatistics:
        return self.security.statistics()

    async def route(self, message: Message) -> None:
        command = extract_command(getattr(message, "text", None))
        if command is None:
            return

        self._in_flight += 1
        self._idle.clear()
        try:
            await self._dispatch(message, command)
        except Exception as exc:
            context = ErrorContext.from_message(message, command=command or "unknown")
            await self.error_reporter.handle_error(message, exc, context)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def _dispatch(self, message: Message, command: str) -> None:
        registration = self.registry.get(command)
        if registration is None:
            await self.commands.unknown(message, command)
            return

        chat_type = getattr(message.chat, "type", None)
        if not registration.allows_chat_type(chat_type):
            await self._reply_invalid_context(message, registration)
            return

        await _build_chain(self._middlewares, message, registration.handler)()

    async def _reply_invalid_context(self, message: Message, registration: CommandRegistration) -> None:
        logger.info(
            "command_chat_type_rejected",
            command=registration.name,
            chat_id=message.chat.id,
            chat_type=message.chat.type,
            allowed_types=sorted(registration.allowed_chat_types),
        )
        text = (
            f"❌ Команду /{registration.name} нельзя использовать в этом типе чата.\n\n"
            f"💡 Команда доступна только в: {format_chat_types(registration.allowed_chat_types)}"
        )
        await safe_answer(message, text, purpose="invalid_context")

    async def drain(self, timeout: float) -> bool:
        """Waits for in-flight routes; returns False if the grace period ran out."""

        if self._idle.is_set():
            return True
        logger.info("command_router_draining", in_flight=self._in_flight, timeout=timeout)
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("command_router_drain_timeout", in_flight=self._in_flight)
            return False
        return True

    async def stop(self) -> None:
        await self.security.stop()
        logger.info("command_router_stopped")
