"""Atomic fixed-window counters for per-user action rate limiting.

hit() increments and returns the count in one step, so two concurrent
actions for the same user can never both observe the pre-increment value.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)

MAX_TRACKED_KEYS = 10_000


class ActionCounter(Protocol):
    async def hit(self, key: str, window_seconds: int) -> int:
        """Increment the counter for key and return its value in the current window."""
        ...


@dataclass(slots=True)
class _Window:
    count: int
    window_end: float


class InMemoryActionCounter:
    """Single-process counter; increments are serialised under an asyncio lock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, _Window] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def hit(self, key: str, window_seconds: int) -> int:
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None or now >= entry.window_end:
                if len(self._entries) >= MAX_TRACKED_KEYS:
                    self._entries = {k: e for k, e in self._entries.items() if e.window_end > now}
                entry = _Window(count=0, window_end=now + window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return entry.count


class RedisActionCounter:
    """Shared counter: INCR and EXPIRE NX run in one MULTI/EXEC transaction."""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit"):
        self._rdb = client
        self._prefix = prefix

    async def hit(self, key: str, window_seconds: int) -> int:
        name = f"{self._prefix}:{key}"
        async with self._rdb.pipeline(transaction=True) as pipe:
            pipe.incr(name)
            pipe.expire(name, window_seconds, nx=True)
            count, _ = await pipe.execute()
        return int(count)


def action_key(user_id: str, action_type: str) -> str:
    return f"{user_id}:{action_type}"
