from __future__ import annotations

import asyncio
import contextlib
import math
import time
from dataclasses import dataclass
from enum import Enum

from chatid_bot.core.logging import get_logger

logger = get_logger(__name__)

CHAT_LIMIT_MULTIPLIER = 5
MAX_PENALTY_MULTIPLIER = 5
DEFAULT_CLEANUP_INTERVAL = 300.0


class RateLimitReason(str, Enum):
    PENALTY = "penalty"
    RATE_LIMIT = "rate_limit"
    CHAT_LIMIT = "chat_limit"


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    max_requests: int = 10
    time_window: float = 60.0
    penalty_time: float | None = 300.0
    use_progressive_penalty: bool = True

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.time_window <= 0:
            raise ValueError("time_window must be > 0")


@dataclass(slots=True)
class RateLimitEntry:
    count: int
    window_reset_at: float
    penalty_expires_at: float | None = None
    penalty_strikes: int = 0

    def window_active(self, now: float) -> bool:
        return now < self.window_reset_at

    def penalty_active(self, now: float) -> bool:
        return self.penalty_expires_at is not None and now < self.penalty_expires_at

    def expired(self, now: float) -> bool:
        return not self.window_active(now) and not self.penalty_active(now)


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    is_limited: bool
    remaining_time: int | None = None
    reason: RateLimitReason | None = None


@dataclass(frozen=True, slots=True)
class RateLimitStatistics:
    total_users: int
    total_chats: int
    penalized_users: int
    active_users: int


def _seconds_until(deadline: float, now: float) -> int:
    return max(0, math.ceil(deadline - now))


class RateLimiter:
    """In-memory fixed-window limiter with per-user penalties.

    State lives in two maps (users, chats) that are only touched from the event
    loop, so no locking is needed. Nothing is persisted: a restart forgets all
    counters and penalties.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
    ) -> None:
        self.config = config or RateLimitConfig()
        self.cleanup_interval = cleanup_interval
        self._users: dict[int, RateLimitEntry] = {}
        self._chats: dict[int, RateLimitEntry] = {}
        self._cleanup_task: asyncio.Task[None] | None = None

    def check_and_record(
        self,
        user_id: int,
        chat_id: int | None = None,
        config: RateLimitConfig | None = None,
        *,
        now: float | None = None,
    ) -> RateLimitResult:
        cfg = config or self.config
        now = time.monotonic() if now is None else now

        result = self._check_user(user_id, now, cfg)
        if result.is_limited:
            return result

        if chat_id is not None:
            result = self._check_chat(chat_id, now, cfg)
            if result.is_limited:
                return result

        self._record(self._users, user_id, now, cfg)
        if chat_id is not None:
            self._record(self._chats, chat_id, now, cfg)

        return RateLimitResult(is_limited=False)

    def _check_user(self, user_id: int, now: float, cfg: RateLimitConfig) -> RateLimitResult:
        entry = self._users.get(user_id)
        if entry is None:
            return RateLimitResult(is_limited=False)

        if entry.penalty_active(now):
            remaining = _seconds_until(entry.penalty_expires_at, now)  # type: ignore[arg-type]
            logger.warning(
                "rate_limit_penalty_active",
                user_id=user_id,
                remaining_time=remaining,
                penalty_strikes=entry.penalty_strikes,
            )
            return RateLimitResult(is_limited=True, remaining_time=remaining, reason=RateLimitReason.PENALTY)

        if entry.window_active(now) and entry.count >= cfg.max_requests:
            remaining = _seconds_until(entry.window_reset_at, now)
            if cfg.penalty_time:
                self._apply_penalty(user_id, entry, now, cfg.penalty_time, cfg.use_progressive_penalty)
            logger.warning(
                "rate_limit_exceeded",
                user_id=user_id,
                request_count=entry.count,
                max_requests=cfg.max_requests,
                remaining_time=remaining,
            )
            return RateLimitResult(is_limited=True, remaining_time=remaining, reason=RateLimitReason.RATE_LIMIT)

        return RateLimitResult(is_limited=False)

    def _check_chat(self, chat_id: int, now: float, cfg: RateLimitConfig) -> RateLimitResult:
        entry = self._chats.get(chat_id)
        limit = cfg.max_requests * CHAT_LIMIT_MULTIPLIER
        if entry is not None and entry.window_active(now) and entry.count >= limit:
            remaining = _seconds_until(entry.window_reset_at, now)
            logger.warning(
                "chat_rate_limit_exceeded",
                chat_id=chat_id,
                request_count=entry.count,
                max_requests=limit,
                remaining_time=remaining,
            )
            return RateLimitResult(is_limited=True, remaining_time=remaining, reason=RateLimitReason.CHAT_LIMIT)
        return RateLimitResult(is_limited=False)

    @staticmethod
    def _record(entries: dict[int, RateLimitEntry], key: int, now: float, cfg: RateLimitConfig) -> None:
        entry = entries.get(key)
        if entry is None:
            entries[key] = RateLimitEntry(count=1, window_reset_at=now + cfg.time_window)
        elif not entry.window_active(now):
            # strikes and any penalty outlive the window
            entry.count = 1
            entry.window_reset_at = now + cfg.time_window
        else:
            entry.count += 1

    def _apply_penalty(
        self,
        user_id: int,
        entry: RateLimitEntry,
        now: float,
        base: float,
        progressive: bool,
    ) -> None:
        strikes = entry.penalty_strikes + 1
        duration = base * min(strikes, MAX_PENALTY_MULTIPLIER) if progressive else base

        entry.penalty_expires_at = now + duration
        entry.penalty_strikes = strikes
        logger.warning(
            "rate_limit_penalty_applied",
            user_id=user_id,
            penalty_strikes=strikes,
            penalty_duration=math.ceil(duration),
        )

    def clear_user(self, user_id: int) -> None:
        self._users.pop(user_id, None)
        logger.info("rate_limit_user_cleared", user_id=user_id)

    def clear_chat(self, chat_id: int) -> None:
        self._chats.pop(chat_id, None)
        logger.info("rate_limit_chat_cleared", chat_id=chat_id)

    def get_user_entry(self, user_id: int) -> RateLimitEntry | None:
        return self._users.get(user_id)

    def get_chat_entry(self, chat_id: int) -> RateLimitEntry | None:
        return self._chats.get(chat_id)

    def statistics(self, *, now: float | None = None) -> RateLimitStatistics:
        now = time.monotonic() if now is None else now
        return RateLimitStatistics(
            total_users=len(self._users),
            total_chats=len(self._chats),
            penalized_users=sum(1 for e in self._users.values() if e.penalty_active(now)),
            active_users=sum(1 for e in self._users.values() if e.window_active(now)),
        )

    def cleanup(self, *, now: float | None = None) -> tuple[int, int]:
        now = time.monotonic() if now is None else now

        stale_users = [uid for uid, e in self._users.items() if e.expired(now)]
        for uid in stale_users:
            del self._users[uid]

        stale_chats = [cid for cid, e in self._chats.items() if not e.window_active(now)]
        for cid in stale_chats:
            del self._chats[cid]

        if stale_users or stale_chats:
            logger.debug(
                "rate_limit_cleanup_done",
                cleaned_users=len(stale_users),
                cleaned_chats=len(stale_chats),
                remaining_users=len(self._users),
                remaining_chats=len(self._chats),
            )
        return len(stale_users), len(stale_chats)

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.cleanup()

    def start(self) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="rate-limiter-cleanup")
        logger.info("rate_limiter_started", cleanup_interval=self.cleanup_interval)

    async def stop(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._users.clear()
        self._chats.clear()
        logger.info("rate_limiter_stopped")
