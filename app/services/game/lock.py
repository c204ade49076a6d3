"""Per-game lock serializing event submissions.

Each submission reads the snapshot, validates, appends and writes the new
snapshot; concurrent submissions for one game must not interleave. The lock
is a Redis key set with NX and an expiry, released only by its holder.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from upstash_redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Delete the key only if it still holds our token
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class GameLockError(Exception):
    """The game is locked by another submission."""


class GameLock(Protocol):
    def hold(self, game_id: str) -> AbstractAsyncContextManager[None]: ...


class RedisGameLock:
    """Redis-backed mutual exclusion per game_id."""

    def __init__(
        self,
        redis_client: Redis,
        ttl_seconds: int = 10,
        wait_seconds: float = 5.0,
        retry_interval: float = 0.05,
    ):
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._wait = wait_seconds
        self._retry_interval = retry_interval

    def _lock_key(self, game_id: str) -> str:
        return f"game:{game_id}:lock"

    @asynccontextmanager
    async def hold(self, game_id: str) -> AsyncIterator[None]:
        """Hold the lock for a game for the duration of the block.

        Raises:
            GameLockError: If the lock could not be acquired in time.
        """
        key = self._lock_key(game_id)
        token = str(uuid.uuid4())
        deadline = time.monotonic() + self._wait

        while not await self._redis.set(key, token, nx=True, ex=self._ttl):
            if time.monotonic() >= deadline:
                logger.warning("Could not acquire lock for game %s", game_id)
                raise GameLockError(f"Game {game_id} is busy, try again")
            await asyncio.sleep(self._retry_interval)

        logger.debug("Lock acquired: game=%s", game_id)
        try:
            yield
        finally:
            released = await self._redis.eval(RELEASE_SCRIPT, keys=[key], args=[token])
            if not released:
                logger.warning("Lock for game %s expired before release", game_id)
            else:
                logger.debug("Lock released: game=%s", game_id)
