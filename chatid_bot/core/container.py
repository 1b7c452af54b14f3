from __future__ import annotations

from dataclasses import dataclass

from chatid_bot.core.command_registry import CommandRegistry
from chatid_bot.core.config import Settings
from chatid_bot.core.logging import get_logger
from chatid_bot.services.audit_service import AuditService
from chatid_bot.services.chat_info_service import ChatInfoService
from chatid_bot.services.error_reporter import ErrorReporter
from chatid_bot.services.help_service import HelpService
from chatid_bot.services.permissions import ChatMemberSource, PermissionGate
from chatid_bot.services.rate_limiter import RateLimitConfig, RateLimiter
from chatid_bot.telegram.command_router import CommandRouter
from chatid_bot.telegram.commands import ChatCommands
from chatid_bot.telegram.middlewares.security import SecurityMiddleware, SecurityMiddlewareConfig
from chatid_bot.telegram.middlewares.stages import logging_stage

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings

    registry: CommandRegistry
    rate_limiter: RateLimiter
    permissions: PermissionGate
    audit_service: AuditService
    security: SecurityMiddleware

    help_service: HelpService
    chat_info_service: ChatInfoService
    error_reporter: ErrorReporter
    commands: ChatCommands
    command_router: CommandRouter

    async def startup(self) -> None:
        self.rate_limiter.start()
        logger.info("startup_done", commands=[c.name for c in self.registry.all_commands()])

    async def shutdown(self) -> None:
        await self.command_router.drain(self.settings.shutdown_grace_seconds)
        await self.command_router.stop()
        logger.info("shutdown_done")


def rate_limit_config(settings: Settings) -> RateLimitConfig:
    return RateLimitConfig(
        max_requests=settings.rate_limit_max_requests,
        time_window=settings.rate_limit_window_seconds,
        penalty_time=settings.rate_limit_penalty_seconds or None,
        use_progressive_penalty=settings.rate_limit_progressive,
    )


def build_container(settings: Settings, member_source: ChatMemberSource) -> Container:
    limits = rate_limit_config(settings)

    registry = CommandRegistry()
    rate_limiter = RateLimiter(limits, cleanup_interval=settings.rate_limit_cleanup_seconds)
    permissions = PermissionGate(source=member_source)
    audit_service = AuditService()
    security = SecurityMiddleware(
        rate_limiter=rate_limiter,
        permissions=permissions,
        audit=audit_service,
        config=SecurityMiddlewareConfig(rate_limiting=limits),
    )

    help_service = HelpService(registry=registry)
    chat_info_service = ChatInfoService()
    error_reporter = ErrorReporter(settings=settings)
    commands = ChatCommands(chat_info=chat_info_service, help=help_service)
    command_router = CommandRouter(
        registry=registry,
        commands=commands,
        security=security,
        error_reporter=error_reporter,
    )
    command_router.add_middleware(logging_stage())

    return Container(
        settings=settings,
        registry=registry,
        rate_limiter=rate_limiter,
        permissions=permissions,
        audit_service=audit_service,
        security=security,
        help_service=help_service,
        chat_info_service=chat_info_service,
        error_reporter=error_reporter,
        commands=commands,
        command_router=command_router,
    )
