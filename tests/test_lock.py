"""Tests for the Redis-backed per-game lock."""

import asyncio

import pytest

from app.services.game.lock import GameLockError, RedisGameLock

from .conftest import GAME_ID

LOCK_KEY = f"game:{GAME_ID}:lock"


class FakeRedis:
    """Just enough of the async Upstash client for the lock."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.set_calls = 0
        self.free_after: int | None = None

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None):
        self.set_calls += 1
        if self.free_after is not None and self.set_calls > self.free_after:
            self.values.pop(key, None)
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    async def eval(self, script: str, keys: list[str], args: list[str]):
        if self.values.get(keys[0]) == args[0]:
            del self.values[keys[0]]
            return 1
        return 0


def make_lock(redis: FakeRedis) -> RedisGameLock:
    return RedisGameLock(redis, ttl_seconds=10, wait_seconds=0.05, retry_interval=0.001)


async def hold_once(lock: RedisGameLock, redis: FakeRedis, during=None):
    async with lock.hold(GAME_ID):
        held = redis.values.get(LOCK_KEY)
        if during:
            during()
    return held


class TestRedisGameLock:
    def test_acquire_and_release(self):
        redis = FakeRedis()

        held = asyncio.run(hold_once(make_lock(redis), redis))

        assert held is not None
        assert LOCK_KEY not in redis.values

    def test_busy_game_times_out(self):
        redis = FakeRedis()
        redis.values[LOCK_KEY] = "other-holder"

        with pytest.raises(GameLockError):
            asyncio.run(hold_once(make_lock(redis), redis))

        assert redis.values[LOCK_KEY] == "other-holder"
        assert redis.set_calls > 1

    def test_retries_until_lock_is_free(self):
        redis = FakeRedis()
        redis.values[LOCK_KEY] = "other-holder"
        redis.free_after = 2

        held = asyncio.run(hold_once(make_lock(redis), redis))

        assert held not in (None, "other-holder")
        assert redis.set_calls == 3
        assert LOCK_KEY not in redis.values

    def test_release_leaves_another_holders_key(self):
        """After expiry someone else may hold the key; release must not delete it."""
        redis = FakeRedis()

        def expire_and_steal():
            redis.values[LOCK_KEY] = "new-holder"

        asyncio.run(hold_once(make_lock(redis), redis, during=expire_and_steal))

        assert redis.values[LOCK_KEY] == "new-holder"

    def test_released_on_error(self):
        redis = FakeRedis()

        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(hold_once(make_lock(redis), redis, during=fail))

        assert LOCK_KEY not in redis.values
