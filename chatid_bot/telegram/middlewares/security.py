from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from aiogram.types import Message

from chatid_bot.core.logging import get_logger
from chatid_bot.services.audit_service import AuditService, SecurityEventKind
from chatid_bot.services.permissions import ALL_CHAT_TYPES, PermissionGate
from chatid_bot.services.rate_limiter import RateLimitConfig, RateLimiter, RateLimitReason, RateLimitStatistics
from chatid_bot.telegram.middlewares.types import CommandMiddleware, NextHandler, safe_answer
from chatid_bot.utils.text import extract_command, format_chat_types

logger = get_logger(__name__)

_RATE_LIMIT_TEMPLATES: dict[RateLimitReason | None, str] = {
    RateLimitReason.PENALTY: "🚫 Вы временно ограничены за слишком частые запросы. Подождите {seconds} сек.",
    RateLimitReason.RATE_LIMIT: "⏰ Слишком частые запросы. Подождите {seconds} сек.",
    RateLimitReason.CHAT_LIMIT: "⚠️ В этом чате слишком много запросов. Подождите {seconds} сек.",
    None: "⏰ Запрос ограничен. Подождите {seconds} сек.",
}

_ADMIN_REQUIRED = (
    "❌ Эта команда доступна только администраторам.\n\n"
    "💡 Её могут использовать только администраторы или создатель чата."
)


@dataclass(frozen=True)
class SecurityMiddlewareConfig:
    rate_limiting: RateLimitConfig | None = field(default_factory=RateLimitConfig)
    check_bot_permissions: bool = True
    validate_chat_types: bool = True
    allowed_chat_types: frozenset[str] = ALL_CHAT_TYPES
    require_admin: bool = False
    log_security_events: bool = True


def _bot_permission_text(chat_type: str | None) -> str:
    text = "❌ У бота недостаточно прав для этого действия.\n\n"
    if chat_type in ("group", "supergroup"):
        return text + (
            "💡 Убедитесь, что:\n"
            "• бот состоит в группе\n"
            "• у бота есть право отправлять сообщения\n"
            "• бот не ограничен"
        )
    if chat_type == "channel":
        return text + "💡 Убедитесь, что:\n• бот является администратором канала\n• у бота есть право публиковать сообщения"
    return text + "💡 Проверьте настройки прав бота."


class SecurityMiddleware:
    """Rate limit, chat type, bot permission and admin checks as one command stage.

    Checks run in that order and stop at the first failure, after telling the
    user why. Unexpected exceptions, including those raised further down the
    chain, end here: they are logged and the user gets a sanitized message.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        permissions: PermissionGate,
        audit: AuditService,
        config: SecurityMiddlewareConfig | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.permissions = permissions
        self.audit = audit
        self.config = config or SecurityMiddlewareConfig()

    def create_middleware(self, **overrides: Any) -> CommandMiddleware:
        cfg = replace(self.config, **overrides) if overrides else self.config
        if not isinstance(cfg.allowed_chat_types, frozenset):
            cfg = replace(cfg, allowed_chat_types=frozenset(cfg.allowed_chat_types))

        async def security_stage(message: Message, next_handler: NextHandler) -> None:
            try:
                if cfg.rate_limiting is not None and await self._rate_limited(message, cfg.rate_limiting):
                    return
                if cfg.validate_chat_types and not await self._chat_type_allowed(message, cfg):
                    return
                if cfg.check_bot_permissions and not await self._bot_can_send(message):
                    return
                if cfg.require_admin and not await self._sender_is_admin(message):
                    return

                if cfg.log_security_events:
                    self.audit.log_event(
                        SecurityEventKind.COMMAND_ALLOWED,
                        message,
                        command=extract_command(getattr(message, "text", None)),
                    )
                await next_handler()
            except Exception as exc:
                await self._handle_error(message, exc, cfg)

        return security_stage

    async def _rate_limited(self, message: Message, config: RateLimitConfig) -> bool:
        user = getattr(message, "from_user", None)
        chat_id = getattr(message.chat, "id", None)
        if user is None or getattr(user, "id", None) is None:
            logger.warning("rate_limit_skipped_no_user", chat_id=chat_id)
            return False

        result = self.rate_limiter.check_and_record(user.id, chat_id, config)
        if not result.is_limited:
            return False

        seconds = result.remaining_time or 0
        template = _RATE_LIMIT_TEMPLATES.get(result.reason, _RATE_LIMIT_TEMPLATES[None])
        await safe_answer(message, template.format(seconds=seconds), purpose="rate_limit")
        self.audit.log_event(
            SecurityEventKind.RATE_LIMIT_EXCEEDED,
            message,
            reason=result.reason.value if result.reason else None,
            remaining_time=seconds,
        )
        return True

    async def _chat_type_allowed(self, message: Message, cfg: SecurityMiddlewareConfig) -> bool:
        if self.permissions.validate_chat_type(message, cfg.allowed_chat_types):
            return True

        chat_type = getattr(message.chat, "type", None)
        text = (
            f"❌ Эту функцию нельзя использовать в текущем типе чата ({format_chat_types([chat_type])}).\n\n"
            f"💡 Поддерживаемые типы чатов: {format_chat_types(cfg.allowed_chat_types)}"
        )
        await safe_answer(message, text, purpose="invalid_chat_type")
        self.audit.log_event(
            SecurityEventKind.INVALID_CHAT_TYPE,
            message,
            allowed_types=sorted(cfg.allowed_chat_types),
        )
        return False

    async def _bot_can_send(self, message: Message) -> bool:
        if await self.permissions.bot_has_send_permission(message):
            return True

        chat_type = getattr(message.chat, "type", None)
        # a failed reply here only confirms the missing permission
        await safe_answer(message, _bot_permission_text(chat_type), purpose="insufficient_bot_permissions")
        self.audit.log_event(SecurityEventKind.INSUFFICIENT_BOT_PERMISSIONS, message)
        return False

    async def _sender_is_admin(self, message: Message) -> bool:
        user = getattr(message, "from_user", None)
        if user is None or getattr(user, "id", None) is None:
            logger.warning("admin_check_skipped_no_user", chat_id=getattr(message.chat, "id", None))
            return True

        if await self.permissions.user_is_admin(message):
            return True

        await safe_answer(message, _ADMIN_REQUIRED, purpose="admin_permission_denied")
        self.audit.log_event(SecurityEventKind.ADMIN_PERMISSION_DENIED, message)
        return False

    async def _handle_error(self, message: Message, exc: Exception, cfg: SecurityMiddlewareConfig) -> None:
        chat = getattr(message, "chat", None)
        user = getattr(message, "from_user", None)
        logger.exception(
            "security_middleware_error",
            error=str(exc),
            error_type=type(exc).__name__,
            chat_id=getattr(chat, "id", None),
            user_id=getattr(user, "id", None),
        )

        await safe_answer(message, self.permissions.sanitize_error(exc, message), purpose="security_error")

        if cfg.log_security_events:
            self.audit.log_event(SecurityEventKind.SECURITY_MIDDLEWARE_ERROR, message, error=str(exc))

    def statistics(self) -> RateLimitStatistics:
        return self.rate_limiter.statistics()

    async def stop(self) -> None:
        await self.rate_limiter.stop()
        logger.info("security_middleware_stopped")
