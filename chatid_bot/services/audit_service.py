from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from aiogram.types import Message

from chatid_bot.core.logging import get_logger

logger = get_logger(__name__)


class SecurityEventKind(str, Enum):
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    INVALID_CHAT_TYPE = "invalid_chat_type"
    INSUFFICIENT_BOT_PERMISSIONS = "insufficient_bot_permissions"
    ADMIN_PERMISSION_DENIED = "admin_permission_denied"
    COMMAND_ALLOWED = "command_allowed"
    SECURITY_MIDDLEWARE_ERROR = "security_middleware_error"


@dataclass(frozen=True)
class SecurityEvent:
    kind: SecurityEventKind
    chat_id: int | None
    chat_type: str | None
    user_id: int | None
    username: str | None
    timestamp: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, kind: SecurityEventKind, message: Message, **metadata: Any) -> SecurityEvent:
        chat = getattr(message, "chat", None)
        user = getattr(message, "from_user", None)
        return cls(
            kind=kind,
            chat_id=getattr(chat, "id", None),
            chat_type=getattr(chat, "type", None),
            user_id=getattr(user, "id", None),
            username=getattr(user, "username", None),
            timestamp=datetime.now(timezone.utc).isoformat(),
            metadata=metadata,
        )


@dataclass(frozen=True)
class AuditService:
    """Write-only sink for security events; records go to the structured log."""

    def log(self, event: SecurityEvent) -> None:
        payload = asdict(event)
        payload["kind"] = event.kind.value
        metadata = payload.pop("metadata")
        logger.info("security_event", **payload, **{k: v for k, v in metadata.items() if k not in payload})

    def log_event(self, kind: SecurityEventKind, message: Message, **metadata: Any) -> SecurityEvent:
        event = SecurityEvent.from_message(kind, message, **metadata)
        self.log(event)
        return event
