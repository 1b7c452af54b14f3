from unittest.mock import AsyncMock

import pytest

from chatid_bot.telegram.middlewares.stages import admin_allowlist_stage, logging_stage, rate_limit_stage


@pytest.mark.asyncio
async def test_logging_stage_passes_through(make_message):
    next_handler = AsyncMock()

    await logging_stage()(make_message("/chatid arg"), next_handler)

    next_handler.assert_awaited_once()


@pytest.mark.asyncio
async def test_logging_stage_reraises(make_message):
    with pytest.raises(RuntimeError):
        await logging_stage()(make_message(), AsyncMock(side_effect=RuntimeError("boom")))


@pytest.mark.asyncio
async def test_rate_limit_stage(make_message):
    stage = rate_limit_stage(max_requests=2, time_window=60)
    next_handler = AsyncMock()

    for _ in range(2):
        await stage(make_message(user_id=1), next_handler)
    blocked = make_message(user_id=1)
    await stage(blocked, next_handler)
    await stage(make_message(user_id=2), next_handler)

    assert next_handler.await_count == 3
    assert "Подождите" in blocked.answer.call_args.args[0]


@pytest.mark.asyncio
async def test_rate_limit_stage_state_is_per_stage(make_message):
    first = rate_limit_stage(max_requests=1)
    second = rate_limit_stage(max_requests=1)
    next_handler = AsyncMock()

    await first(make_message(user_id=1), next_handler)
    await second(make_message(user_id=1), next_handler)

    assert next_handler.await_count == 2


@pytest.mark.asyncio
async def test_admin_allowlist_stage(make_message):
    stage = admin_allowlist_stage([10, "11"])
    next_handler = AsyncMock()

    await stage(make_message(user_id=11), next_handler)
    outsider = make_message(user_id=12)
    await stage(outsider, next_handler)
    anonymous = make_message(chat_type="channel", user_id=None)
    await stage(anonymous, next_handler)

    next_handler.assert_awaited_once()
    assert "администраторам" in outsider.answer.call_args.args[0]
    anonymous.answer.assert_awaited_once()


@pytest.mark.asyncio
async def test_rate_limit_stage_window_ends_at_reset(make_message):
    now = [100.0]
    stage = rate_limit_stage(max_requests=1, time_window=60, clock=lambda: now[0])
    next_handler = AsyncMock()

    await stage(make_message(user_id=1), next_handler)
    now[0] = 160.0
    message = make_message(user_id=1)
    await stage(message, next_handler)

    assert next_handler.await_count == 2
    message.answer.assert_not_called()


@pytest.mark.asyncio
async def test_rate_limit_stage_blocks_inside_window(make_message):
    now = [100.0]
    stage = rate_limit_stage(max_requests=1, time_window=60, clock=lambda: now[0])
    next_handler = AsyncMock()

    await stage(make_message(user_id=1), next_handler)
    now[0] = 159.5
    message = make_message(user_id=1)
    await stage(message, next_handler)

    next_handler.assert_awaited_once()
    assert "Подождите 1 сек." in message.answer.call_args.args[0]
