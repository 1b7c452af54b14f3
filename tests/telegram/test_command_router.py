from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from chatid_bot.services.permissions import SAFE_ERROR_MESSAGES
from chatid_bot.services.rate_limiter import RateLimitConfig


@pytest.mark.asyncio
async def test_command_with_bot_suffix_and_args(make_message, router_factory):
    router = router_factory()
    message = make_message("/chatid@somebot extra", chat_type="group", chat_id=-2001)

    await router.route(message)

    message.answer.assert_awaited_once()
    assert "<code>-2001</code>" in message.answer.call_args.args[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["/id", "/CHATID", "/ChatId@SomeBot"])
async def test_aliases_and_case(make_message, router_factory, text):
    router = router_factory()
    message = make_message(text, chat_type="private", user_id=555)

    await router.route(message)

    message.answer.assert_awaited_once()
    assert "<code>555</code>" in message.answer.call_args.args[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["hello", "", None, "/", "/ spaced"])
async def test_non_commands_are_ignored(make_message, router_factory, text):
    router = router_factory()
    message = make_message(text)

    await router.route(message)

    message.answer.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_command_points_to_help(make_message, router_factory):
    router = router_factory()
    message = make_message("/foobar")

    await router.route(message)

    message.answer.assert_awaited_once()
    assert "/help" in message.answer.call_args.args[0]


@pytest.mark.asyncio
async def test_private_only_command_from_group(make_message, router_factory):
    router = router_factory()
    handler = AsyncMock()
    router.register_command("secret", handler, allowed_chat_types=["private"])
    message = make_message("/secret", chat_type="group")

    await router.route(message)

    handler.assert_not_awaited()
    text = message.answer.call_args.args[0]
    assert "Команда доступна только в" in text
    assert "(private)" in text


@pytest.mark.asyncio
async def test_stage_that_stops_the_chain(make_message, router_factory):
    router = router_factory()

    async def swallow(message, next_handler):
        return None

    router.add_middleware(swallow)
    message = make_message("/chatid")

    await router.route(message)

    message.answer.assert_not_called()


@pytest.mark.asyncio
async def test_stages_run_in_order_after_security(make_message, router_factory):
    router = router_factory()
    seen = []

    def recording(name):
        async def stage(message, next_handler):
            seen.append(name)
            await next_handler()

        return stage

    handler = AsyncMock(side_effect=lambda message: seen.append("handler"))
    router.register_command("ping", handler)
    router.add_middleware(recording("first"))
    router.add_middleware(recording("second"))

    await router.route(make_message("/ping"))

    assert seen == ["first", "second", "handler"]
    assert len(router.middlewares) == 3


@pytest.mark.asyncio
async def test_handler_error_gets_one_safe_reply(make_message, router_factory):
    router = router_factory()
    router.register_command("boom", AsyncMock(side_effect=RuntimeError("secret internals")))
    message = make_message("/boom")

    await router.route(message)

    message.answer.assert_awaited_once_with(SAFE_ERROR_MESSAGES["generic"])


@pytest.mark.asyncio
async def test_errors_outside_the_chain_go_to_reporter(make_message, router_factory):
    reporter = SimpleNamespace(handle_error=AsyncMock())
    router = router_factory(error_reporter=reporter)
    message = make_message("/foobar")
    message.answer.side_effect = RuntimeError("Forbidden: bot was kicked")

    await router.route(message)

    reporter.handle_error.assert_awaited_once()
    _, error, context = reporter.handle_error.call_args.args
    assert isinstance(error, RuntimeError)
    assert context.command == "foobar"
    assert context.chat_id == message.chat.id


@pytest.mark.asyncio
async def test_rate_limit_through_router(make_message, router_factory):
    router = router_factory(rate_limiting=RateLimitConfig(max_requests=1, time_window=60, penalty_time=300))

    await router.route(make_message("/chatid"))
    message = make_message("/chatid")
    await router.route(message)

    assert "Подождите" in message.answer.call_args.args[0]
    stats = router.security_statistics()
    assert stats.total_users == 1
    assert stats.penalized_users == 1


@pytest.mark.asyncio
async def test_security_stage_with_overrides(make_message, router_factory, source_factory):
    source = source_factory({(-1001, 42): "member"})
    router = router_factory(source=source)
    router.add_security_middleware(require_admin=True, rate_limiting=None)
    message = make_message("/chatid", chat_type="group", user_id=42)

    await router.route(message)

    assert "только администраторам" in message.answer.call_args.args[0]


@pytest.mark.asyncio
async def test_help_lists_registered_commands(make_message, router_factory):
    router = router_factory()
    router.register_command("ping", AsyncMock(), description="Проверка связи")
    message = make_message("/h")

    await router.route(message)

    text = message.answer.call_args.args[0]
    assert "/chatid, /id" in text
    assert "/ping" in text
    assert "Проверка связи" in text


def test_default_commands(router_factory):
    router = router_factory()

    assert [c.name for c in router.registered_commands()] == ["chatid", "help", "info", "start"]
    assert router.is_command_registered("id")
    assert router.is_command_registered("h")


@pytest.mark.asyncio
async def test_info_in_group_includes_member_count(make_message, router_factory):
    router = router_factory()
    message = make_message("/info", chat_type="group", chat_id=-3003, title="Team <dev>")
    message.bot = SimpleNamespace(get_chat_member_count=AsyncMock(return_value=42))

    await router.route(message)

    text = message.answer.call_args.args[0]
    assert "<code>-3003</code>" in text
    assert "Team &lt;dev&gt;" in text
    assert "Участников: 42" in text


@pytest.mark.asyncio
async def test_info_survives_member_count_failure(make_message, router_factory):
    router = router_factory()
    message = make_message("/info", chat_type="supergroup", chat_id=-3004)
    message.bot = SimpleNamespace(get_chat_member_count=AsyncMock(side_effect=RuntimeError("Forbidden")))

    await router.route(message)

    message.answer.assert_awaited_once()
    assert "Участников" not in message.answer.call_args.args[0]


@pytest.mark.asyncio
async def test_drain_and_stop(make_message, router_factory):
    router = router_factory()
    await router.route(make_message("/start"))

    assert await router.drain(timeout=0.1)
    await router.stop()
    assert router.security_statistics().total_users == 0
