"""Behavior profile stores: Redis-backed with an in-memory fallback."""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

import redis.asyncio as redis

from trustgate.models.game import UserGameBehavior

logger = logging.getLogger(__name__)

BEHAVIOR_TTL = 90 * 86400  # 90 days of inactivity


class BehaviorStore(Protocol):
    async def get(self, user_id: str) -> UserGameBehavior | None: ...

    async def save(self, behavior: UserGameBehavior) -> None: ...

    async def delete(self, user_id: str) -> None: ...

    def iter_profiles(self) -> AsyncIterator[UserGameBehavior]: ...


class InMemoryBehaviorStore:
    def __init__(self) -> None:
        self._profiles: dict[str, UserGameBehavior] = {}

    async def get(self, user_id: str) -> UserGameBehavior | None:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile is not None else None

    async def save(self, behavior: UserGameBehavior) -> None:
        self._profiles[behavior.user_id] = behavior.model_copy(deep=True)

    async def delete(self, user_id: str) -> None:
        self._profiles.pop(user_id, None)

    async def iter_profiles(self) -> AsyncIterator[UserGameBehavior]:
        for profile in list(self._profiles.values()):
            yield profile.model_copy(deep=True)


class RedisBehaviorStore:
    """Profiles stored as JSON under behavior:{user_id}.

    Unlike a cache, read and write failures propagate: the validator turns
    them into a manual-review rejection.
    """

    def __init__(self, client: redis.Redis):
        self._rdb = client

    @staticmethod
    def _key(user_id: str) -> str:
        return f"behavior:{user_id}"

    async def get(self, user_id: str) -> UserGameBehavior | None:
        data = await self._rdb.get(self._key(user_id))
        if data is None:
            return None
        return UserGameBehavior.model_validate_json(data)

    async def save(self, behavior: UserGameBehavior) -> None:
        await self._rdb.set(
            self._key(behavior.user_id),
            behavior.model_dump_json(by_alias=True),
            ex=BEHAVIOR_TTL,
        )

    async def delete(self, user_id: str) -> None:
        await self._rdb.delete(self._key(user_id))

    async def iter_profiles(self) -> AsyncIterator[UserGameBehavior]:
        async for key in self._rdb.scan_iter(match="behavior:*"):
            data = await self._rdb.get(key)
            if data is None:
                continue
            try:
                yield UserGameBehavior.model_validate_json(data)
            except ValueError:
                logger.warning("behavior store: skipping malformed profile %s", key, exc_info=True)


async def create_redis_client(redis_url: str) -> redis.Redis | None:
    """Connect to Redis. Returns None (in-memory fallbacks) if it is unavailable."""
    if not redis_url:
        logger.info("redis: no URL configured, using in-memory stores")
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        await client.ping()
        logger.info("redis: connected, shared behavior store and counters enabled")
        return client
    except Exception:
        logger.warning("redis: connection failed, using in-memory stores", exc_info=True)
        return None
