from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from chatid_bot.telegram.middlewares.update_logging import UpdateLoggingMiddleware


@pytest.mark.asyncio
async def test_handled_update_is_timed():
    handler = AsyncMock(return_value="ok")
    event = SimpleNamespace(update_id=5, event_type="message")

    with capture_logs() as logs:
        result = await UpdateLoggingMiddleware()(handler, event, {})

    assert result == "ok"
    assert logs[0]["event"] == "update_handled"
    assert logs[0]["update_id"] == 5
    assert logs[0]["update_type"] == "message"
    assert logs[0]["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_failed_update_is_logged_and_reraised():
    handler = AsyncMock(side_effect=ValueError("bad"))

    with capture_logs() as logs, pytest.raises(ValueError):
        await UpdateLoggingMiddleware()(handler, SimpleNamespace(update_id=6), {})

    assert logs[0]["event"] == "update_failed"
    assert logs[0]["error_type"] == "ValueError"
