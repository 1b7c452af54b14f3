import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

# Minimal env variables so importing settings does not fail
os.environ.setdefault("BOT_TOKEN", "123456:ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghi")
os.environ.setdefault("LOG_JSON", "false")

from chatid_bot.core.command_registry import CommandRegistry  # noqa: E402
from chatid_bot.services.audit_service import AuditService  # noqa: E402
from chatid_bot.services.chat_info_service import ChatInfoService  # noqa: E402
from chatid_bot.services.error_reporter import ErrorReporter  # noqa: E402
from chatid_bot.services.help_service import HelpService  # noqa: E402
from chatid_bot.services.permissions import PermissionGate  # noqa: E402
from chatid_bot.services.rate_limiter import RateLimitConfig, RateLimiter  # noqa: E402
from chatid_bot.telegram.command_router import CommandRouter  # noqa: E402
from chatid_bot.telegram.commands import ChatCommands  # noqa: E402
from chatid_bot.telegram.middlewares.security import SecurityMiddleware, SecurityMiddlewareConfig  # noqa: E402

BOT_ID = 999


class FakeMemberSource:
    """Chat member lookups served from a dict; the bot defaults to "member" everywhere."""

    def __init__(self, statuses=None, *, bot_status="member", error=None):
        self.statuses = dict(statuses or {})
        self.bot_status = bot_status
        self.error = error
        self.calls = []

    def get_self_id(self):
        return BOT_ID

    async def get_chat_member(self, chat_id, user_id):
        self.calls.append((chat_id, user_id))
        if self.error is not None:
            raise self.error
        if (chat_id, user_id) in self.statuses:
            return SimpleNamespace(status=self.statuses[(chat_id, user_id)])
        if user_id == BOT_ID:
            return SimpleNamespace(status=self.bot_status)
        return SimpleNamespace(status="member")


def build_message(text="/chatid", *, chat_type="private", chat_id=None, user_id=42, title=None, username="tester"):
    if chat_id is None:
        chat_id = user_id if chat_type == "private" else -1001
    user = None if user_id is None else SimpleNamespace(id=user_id, username=username, is_bot=False)
    return SimpleNamespace(
        message_id=1,
        text=text,
        chat=SimpleNamespace(id=chat_id, type=chat_type, title=title, username=None, description=None),
        from_user=user,
        answer=AsyncMock(),
    )


def build_router(source=None, rate_limiting=None, error_reporter=None):
    limits = rate_limiting or RateLimitConfig()
    registry = CommandRegistry()
    security = SecurityMiddleware(
        rate_limiter=RateLimiter(limits),
        permissions=PermissionGate(source=source or FakeMemberSource()),
        audit=AuditService(),
        config=SecurityMiddlewareConfig(rate_limiting=limits),
    )
    commands = ChatCommands(chat_info=ChatInfoService(), help=HelpService(registry=registry))
    return CommandRouter(
        registry=registry,
        commands=commands,
        security=security,
        error_reporter=error_reporter or ErrorReporter(),
    )


@pytest.fixture
def make_message():
    return build_message


@pytest.fixture
def member_source():
    return FakeMemberSource()


@pytest.fixture
def source_factory():
    return FakeMemberSource


@pytest.fixture
def router_factory():
    return build_router
