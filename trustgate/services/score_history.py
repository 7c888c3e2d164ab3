"""Leaderboard score snapshots per period window, for growth-rate checks.

A verified board is recorded under the current window of its period (a
daily board uses epoch days). previous_score() reads the window before
the current one. All-time boards have no windows and keep no history.
"""

import logging
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis

from trustgate.models.game import LeaderboardEntry, LeaderboardPeriod

logger = logging.getLogger(__name__)

PERIOD_HOURS = {
    LeaderboardPeriod.DAILY: 24,
    LeaderboardPeriod.WEEKLY: 168,
    LeaderboardPeriod.MONTHLY: 720,
}

MAX_TRACKED_SCORES = 50_000


def period_window(period: LeaderboardPeriod, now: float) -> int | None:
    hours = PERIOD_HOURS.get(period)
    if hours is None:
        return None
    return int(now // (hours * 3600))


class ScoreHistory(Protocol):
    async def previous_score(self, user_id: str, period: LeaderboardPeriod) -> float | None:
        """Score recorded in the window before the current one, if any."""
        ...

    async def record(self, entries: list[LeaderboardEntry], period: LeaderboardPeriod) -> None: ...


class InMemoryScoreHistory:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._scores: dict[tuple[str, LeaderboardPeriod, int], float] = {}
        self._clock = clock

    async def previous_score(self, user_id: str, period: LeaderboardPeriod) -> float | None:
        window = period_window(period, self._clock())
        if window is None:
            return None
        return self._scores.get((user_id, period, window - 1))

    async def record(self, entries: list[LeaderboardEntry], period: LeaderboardPeriod) -> None:
        window = period_window(period, self._clock())
        if window is None:
            return
        if len(self._scores) >= MAX_TRACKED_SCORES:
            self._scores = {k: v for k, v in self._scores.items() if k[2] >= window - 1}
        for entry in entries:
            self._scores[(entry.user_id, period, window)] = entry.score


class RedisScoreHistory:
    """One hash per window, leaderboard:{period}:{window}, mapping user id to score.

    Failures are logged and treated as "no history": a growth check is
    skipped rather than failing the whole verification.
    """

    def __init__(self, client: redis.Redis, clock: Callable[[], float] = time.time):
        self._rdb = client
        self._clock = clock

    @staticmethod
    def _key(period: LeaderboardPeriod, window: int) -> str:
        return f"leaderboard:{period.value}:{window}"

    async def previous_score(self, user_id: str, period: LeaderboardPeriod) -> float | None:
        window = period_window(period, self._clock())
        if window is None:
            return None
        try:
            raw = await self._rdb.hget(self._key(period, window - 1), user_id)
        except Exception:
            logger.warning("score history read failed for %s", user_id, exc_info=True)
            return None
        return float(raw) if raw is not None else None

    async def record(self, entries: list[LeaderboardEntry], period: LeaderboardPeriod) -> None:
        window = period_window(period, self._clock())
        if window is None or not entries:
            return
        key = self._key(period, window)
        try:
            async with self._rdb.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={e.user_id: e.score for e in entries})
                # readable until the end of the following window
                pipe.expire(key, 2 * PERIOD_HOURS[period] * 3600)
                await pipe.execute()
        except Exception:
            logger.warning("score history write failed for %s board", period.value, exc_info=True)
