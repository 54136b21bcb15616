import pytest

from app.core.config import settings
from app.core.errors import RateLimited
from app.utils.infrastructure.rate_limiter import (
    RATE_LIMITS,
    check_rate_limit,
    enforce_rate_limit,
    rate_limit_key,
)

T0 = 1_760_000_000.0


@pytest.mark.asyncio
async def test_window_fills_then_slides(counter):
    limit = RATE_LIMITS["upload"]

    for i in range(limit.max_requests):
        result = await check_rate_limit(counter, "upload", "user:u1", now=T0 + i)
        assert result.allowed
        assert result.remaining == limit.max_requests - i - 1

    blocked = await check_rate_limit(counter, "upload", "user:u1", now=T0 + 30)
    assert not blocked.allowed
    assert blocked.retry_after == limit.window_seconds - 30 + 1
    assert len(counter.windows[rate_limit_key("upload", "user:u1")]) == limit.max_requests

    later = await check_rate_limit(counter, "upload", "user:u1", now=T0 + limit.window_seconds + 0.5)
    assert later.allowed


@pytest.mark.asyncio
async def test_windows_are_per_user_and_purpose(counter):
    counter.windows[rate_limit_key("upload", "user:u1")] = [T0] * RATE_LIMITS["upload"].max_requests

    assert not (await check_rate_limit(counter, "upload", "user:u1", now=T0 + 1)).allowed
    assert (await check_rate_limit(counter, "upload", "user:u2", now=T0 + 1)).allowed
    assert (await check_rate_limit(counter, "api", "user:u1", now=T0 + 1)).allowed


@pytest.mark.asyncio
async def test_enforce_raises_with_retry_after(counter):
    counter.windows[rate_limit_key("generation", "user:u1")] = [T0] * RATE_LIMITS["generation"].max_requests

    with pytest.raises(RateLimited) as exc:
        await enforce_rate_limit(counter, "generation", "user:u1", now=T0 + 600)

    assert exc.value.status_code == 429
    assert exc.value.details == {"retry_after": 3001, "limit": 50, "window": 3600}


@pytest.mark.asyncio
async def test_store_outage_lets_requests_through(counter):
    counter.fail = True
    result = await check_rate_limit(counter, "api", "user:u1", now=T0)
    assert result.allowed


@pytest.mark.asyncio
async def test_disabled_limits_skip_the_store(counter, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    counter.windows[rate_limit_key("api", "user:u1")] = [T0] * RATE_LIMITS["api"].max_requests

    assert (await check_rate_limit(counter, "api", "user:u1", now=T0)).allowed
    assert counter.calls == 0
