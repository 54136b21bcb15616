"""
Short-window rate limits, applied per purpose on top of the daily quota.

Each purpose is a sliding window kept in the counter store. A store outage
lets the request through: the daily quota and the monthly allowances behind
it fail closed on the same store.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends

from app.core.config import settings
from app.core.errors import RateLimited
from app.utils.auth.dependencies import get_current_user_id
from app.utils.infrastructure.counter import CounterStore, get_counter_store
from app.utils.infrastructure.redis_pool import TRANSIENT_REDIS_ERRORS

log = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_seconds: int


RATE_LIMITS: dict[str, RateLimit] = {
    "api": RateLimit(100, 60),
    "generation": RateLimit(50, 60 * 60),
    "upload": RateLimit(10, 60 * 60),
}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    window_seconds: int
    retry_after: int = 0


def rate_limit_key(purpose: str, identifier: str) -> str:
    return f"{KEY_PREFIX}:{purpose}:{identifier}"


async def check_rate_limit(
    counter: CounterStore,
    purpose: str,
    identifier: str,
    *,
    now: Optional[float] = None,
) -> RateLimitResult:
    cfg = RATE_LIMITS[purpose]
    if not settings.RATE_LIMIT_ENABLED:
        return RateLimitResult(True, cfg.max_requests, cfg.max_requests, cfg.window_seconds)

    key = rate_limit_key(purpose, identifier)
    now = time.time() if now is None else now
    try:
        allowed, remaining, retry_after = await counter.hit_window(
            key, cfg.max_requests, cfg.window_seconds, now)
    except TRANSIENT_REDIS_ERRORS as e:
        log.error("Rate limit check failed: key=%s: %s", key, e)
        return RateLimitResult(True, cfg.max_requests, cfg.max_requests, cfg.window_seconds)

    if not allowed:
        log.warning("Rate limit exceeded: key=%s, limit=%d/%ds", key, cfg.max_requests, cfg.window_seconds)
    return RateLimitResult(allowed, remaining, cfg.max_requests, cfg.window_seconds, retry_after)


async def enforce_rate_limit(
    counter: CounterStore,
    purpose: str,
    identifier: str,
    *,
    now: Optional[float] = None,
) -> RateLimitResult:
    """check_rate_limit, raising RateLimited when the window is full."""
    result = await check_rate_limit(counter, purpose, identifier, now=now)
    if result.allowed:
        return result
    raise RateLimited(
        f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
        details={
            "retry_after": result.retry_after,
            "limit": result.limit,
            "window": result.window_seconds,
        },
    )


def rate_limit(purpose: str) -> Callable:
    """Router/route dependency limiting the authenticated user for `purpose`."""

    async def _dependency(
        user_id: str = Depends(get_current_user_id),
        counter: CounterStore = Depends(get_counter_store),
    ) -> RateLimitResult:
        return await enforce_rate_limit(counter, purpose, f"user:{user_id}")

    return _dependency
