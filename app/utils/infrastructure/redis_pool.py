"""
Shared Redis client for the counter store.

Every worker increments the same per-user counters here, so this client sits
on the request path of each quota, allowance and rate-limit check. Timeouts
are short and come from settings; transient errors are retried by the client
before the store-level retry in ``retry.py`` sees them.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import BusyLoadingError, ConnectionError, TimeoutError

from app.core.config import settings

log = logging.getLogger(__name__)

TRANSIENT_REDIS_ERRORS = (ConnectionError, TimeoutError, BusyLoadingError)
HEALTH_CHECK_INTERVAL = 30

_client: Optional[redis.Redis] = None


def _build_client() -> redis.Redis:
    pool = redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        health_check_interval=HEALTH_CHECK_INTERVAL,
        decode_responses=True,
    )
    retry = Retry(
        retries=settings.REDIS_RETRY_ATTEMPTS,
        backoff=ExponentialBackoff(cap=0.5, base=0.1),
        supported_errors=TRANSIENT_REDIS_ERRORS,
    )
    return redis.Redis(connection_pool=pool, retry=retry, retry_on_error=list(TRANSIENT_REDIS_ERRORS))


async def get_redis() -> redis.Redis:
    """The process-wide client, built on first use."""
    global _client
    if _client is None:
        _client = _build_client()
        log.info(
            "[REDIS] client ready max_connections=%s timeout=%ss",
            settings.REDIS_MAX_CONNECTIONS, settings.REDIS_SOCKET_TIMEOUT,
        )
    return _client


async def redis_ready() -> bool:
    """True when the counter store answers a PING."""
    try:
        r = await get_redis()
        return bool(await r.ping())
    except TRANSIENT_REDIS_ERRORS as e:
        log.warning("[REDIS] not ready: %s", e)
        return False


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.connection_pool.disconnect()
        _client = None
        log.info("[REDIS] client closed")
