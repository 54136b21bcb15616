"""Infrastructure utilities (Redis, atomic counters, rate limits, store retries)."""

from .redis_pool import get_redis, close_redis, redis_ready
from .counter import CounterStore, RedisCounterStore, get_counter_store
from .rate_limiter import RATE_LIMITS, check_rate_limit, enforce_rate_limit, rate_limit
from .retry import with_store_retry, TRANSIENT_STORE_ERRORS

__all__ = [
    # Redis
    "get_redis",
    "close_redis",
    "redis_ready",
    # Counters
    "CounterStore",
    "RedisCounterStore",
    "get_counter_store",
    # Rate limits
    "RATE_LIMITS",
    "check_rate_limit",
    "enforce_rate_limit",
    "rate_limit",
    # Retries
    "with_store_retry",
    "TRANSIENT_STORE_ERRORS",
]
