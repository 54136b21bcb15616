"""
Atomic counter store.

The daily message quota must be linearizable per user: two simultaneous sends
must not both succeed when only one slot is left. Application-side
read-then-write cannot guarantee that across workers, so the
check-and-increment runs as a single Lua script inside Redis. The monthly
voice/photo allowances and the short-window rate limits use the same store.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol
from uuid import uuid4

import redis.asyncio as redis

from app.utils.infrastructure.redis_pool import get_redis

log = logging.getLogger(__name__)


# KEYS[1] counter, ARGV[1] ceiling, ARGV[2] unix expiry (0 = none), ARGV[3] amount
# Returns the post-increment value, or -1 when the ceiling would be exceeded
# (the increment is undone before returning).
INCR_WITH_CEILING_LUA = """
local amount = tonumber(ARGV[3] or "1")
local v = redis.call("INCRBY", KEYS[1], amount)
local expire_at = tonumber(ARGV[2])
if expire_at > 0 then
    redis.call("EXPIREAT", KEYS[1], expire_at)
end
if v > tonumber(ARGV[1]) then
    redis.call("DECRBY", KEYS[1], amount)
    return -1
end
return v
"""

# Decrement by ARGV[1] (default 1) without going below zero.
DECR_FLOOR_LUA = """
local v = tonumber(redis.call("GET", KEYS[1]) or "0")
local amount = tonumber(ARGV[1] or "1")
if v <= 0 then
    return 0
end
if amount > v then
    amount = v
end
return redis.call("DECRBY", KEYS[1], amount)
"""

# Sliding window over a sorted set scored by millisecond timestamps.
# KEYS[1] window, ARGV[1] now ms, ARGV[2] window ms, ARGV[3] limit, ARGV[4] member
# Returns {allowed, hits in window, oldest hit ms}. Rejected hits are not recorded.
SLIDING_WINDOW_LUA = """
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
redis.call("ZREMRANGEBYSCORE", KEYS[1], 0, now - window)
local count = redis.call("ZCARD", KEYS[1])
if count >= tonumber(ARGV[3]) then
    local oldest = redis.call("ZRANGE", KEYS[1], 0, 0, "WITHSCORES")
    return {0, count, tonumber(oldest[2] or ARGV[1])}
end
redis.call("ZADD", KEYS[1], now, ARGV[4])
redis.call("PEXPIRE", KEYS[1], window + 1000)
return {1, count + 1, 0}
"""


class CounterStore(Protocol):
    async def incr_and_get(self, key: str) -> int: ...

    async def incr_with_ceiling(
        self, key: str, ceiling: int, expire_at: Optional[datetime] = None, amount: int = 1
    ) -> Optional[int]: ...

    async def decr_floor(self, key: str, amount: int = 1) -> int: ...

    async def reset(self, key: str) -> None: ...

    async def get(self, key: str) -> int: ...

    async def ttl_reset(self, key: str, boundary: datetime) -> None: ...

    async def hit_window(self, key: str, limit: int, window_seconds: int, now: float) -> tuple[bool, int, int]: ...


class RedisCounterStore:
    """CounterStore backed by the shared Redis pool."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    async def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def incr_and_get(self, key: str) -> int:
        r = await self._redis()
        return int(await r.incr(key))

    async def incr_with_ceiling(
        self,
        key: str,
        ceiling: int,
        expire_at: Optional[datetime] = None,
        amount: int = 1,
    ) -> Optional[int]:
        """Atomically add `amount` unless that would exceed `ceiling`; None means rejected."""
        r = await self._redis()
        expire_ts = int(expire_at.timestamp()) if expire_at else 0
        result = int(await r.eval(INCR_WITH_CEILING_LUA, 1, key, str(ceiling), str(expire_ts), str(amount)))
        if result < 0:
            return None
        return result

    async def decr_floor(self, key: str, amount: int = 1) -> int:
        r = await self._redis()
        return int(await r.eval(DECR_FLOOR_LUA, 1, key, str(amount)))

    async def reset(self, key: str) -> None:
        r = await self._redis()
        await r.delete(key)

    async def get(self, key: str) -> int:
        r = await self._redis()
        value = await r.get(key)
        return int(value) if value is not None else 0

    async def ttl_reset(self, key: str, boundary: datetime) -> None:
        """Make the counter disappear at `boundary` (next quota day)."""
        r = await self._redis()
        await r.expireat(key, int(boundary.timestamp()))

    async def hit_window(self, key: str, limit: int, window_seconds: int, now: float) -> tuple[bool, int, int]:
        """
        Record one hit in a sliding window of `window_seconds`.

        Returns (allowed, remaining, retry_after_seconds).
        """
        r = await self._redis()
        now_ms = int(now * 1000)
        window_ms = window_seconds * 1000
        member = f"{now_ms}:{uuid4().hex[:8]}"
        allowed, count, oldest_ms = await r.eval(
            SLIDING_WINDOW_LUA, 1, key, str(now_ms), str(window_ms), str(limit), member)
        if int(allowed):
            return True, max(0, limit - int(count)), 0
        retry_after = (int(oldest_ms) + window_ms - now_ms) // 1000 + 1
        return False, 0, max(1, retry_after)


_counter_store: Optional[RedisCounterStore] = None


def get_counter_store() -> CounterStore:
    """FastAPI dependency; tests override it with an in-memory store."""
    global _counter_store
    if _counter_store is None:
        _counter_store = RedisCounterStore()
    return _counter_store
