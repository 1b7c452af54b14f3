from __future__ import annotations

import asyncio
from typing import Any, Callable

from aiogram import Bot, Dispatcher

from chatid_bot.core.config import Settings
from chatid_bot.core.container import Container, build_container
from chatid_bot.core.errors import ConfigurationError
from chatid_bot.core.logging import configure_logging, get_logger
from chatid_bot.services.error_reporter import ErrorReporter
from chatid_bot.services.permissions import BotMemberSource
from chatid_bot.telegram.bot_factory import build_bot
from chatid_bot.telegram.commands import setup_commands
from chatid_bot.telegram.middlewares.error_handler import ErrorHandlerMiddleware
from chatid_bot.telegram.middlewares.update_logging import UpdateLoggingMiddleware
from chatid_bot.telegram.routers import chat_events as chat_events_router
from chatid_bot.telegram.routers import commands as commands_router

logger = get_logger(__name__)

LoopExceptionHandler = Callable[[asyncio.AbstractEventLoop, dict[str, Any]], None]


def critical_exception_handler(reporter: ErrorReporter) -> LoopExceptionHandler:
    """Routes errors nobody awaited (failed background tasks, callbacks) to the critical log."""

    def handle(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        message = context.get("message") or "unhandled event loop error"
        error = context.get("exception") or RuntimeError(message)
        reporter.handle_critical_error(error, message)

    return handle


def build_dispatcher(container: Container) -> Dispatcher:
    dp = Dispatcher()

    dp.update.middleware(ErrorHandlerMiddleware(reporter=container.error_reporter))
    dp.update.middleware(UpdateLoggingMiddleware())

    dp.include_router(chat_events_router.router(container.help_service))
    dp.include_router(commands_router.router(container.command_router))
    return dp


async def _prepare(settings: Settings) -> tuple[Bot, Container, Dispatcher]:
    bot = build_bot(settings)
    container = build_container(settings, BotMemberSource(bot))
    asyncio.get_running_loop().set_exception_handler(critical_exception_handler(container.error_reporter))
    dp = build_dispatcher(container)

    await container.startup()
    try:
        await setup_commands(bot, container.registry)
    except Exception as exc:
        # the menu is cosmetic, commands still route without it
        logger.warning("set_my_commands_failed", error=str(exc))
    return bot, container, dp


async def run_polling() -> None:
    settings = Settings()
    configure_logging(settings)

    bot, container, dp = await _prepare(settings)

    logger.info("bot_start", mode="polling")
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await container.shutdown()
        await bot.session.close()
        logger.info("bot_stopped", mode="polling")


async def run_webhook() -> None:
    from aiohttp import web  # local import to keep polling lightweight
    from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

    settings = Settings()
    configure_logging(settings)

    if not settings.webhook_url:
        raise ConfigurationError("WEBHOOK_URL must be set for webhook mode")

    bot, container, dp = await _prepare(settings)

    await bot.set_webhook(settings.webhook_url, allowed_updates=dp.resolve_used_update_types())

    app = web.Application()
    SimpleRequestHandler(dispatcher=dp, bot=bot).register(app, path=settings.webhook_path)
    setup_application(app, dp, bot=bot)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=settings.webhook_host, port=settings.webhook_port)

    logger.info("bot_start", mode="webhook", host=settings.webhook_host, port=settings.webhook_port)
    try:
        await site.start()
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
        await container.shutdown()
        await bot.session.close()
        logger.info("bot_stopped", mode="webhook")


def main() -> None:
    settings = Settings()
    try:
        if settings.bot_mode == "webhook":
            asyncio.run(run_webhook())
        else:
            asyncio.run(run_polling())
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        ErrorReporter(settings=settings).handle_critical_error(exc, "main")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
