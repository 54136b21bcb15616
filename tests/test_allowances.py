from datetime import date, datetime, timezone

import pytest

from app.core.errors import FeatureLocked, QuotaExceeded, TransientStoreError
from app.memory.repo import create_memory
from app.memory.significance import Significance
from app.services.quota import (
    allowance_key,
    check_and_consume_allowance,
    first_plan_with,
    get_usage_stats,
    next_month,
    quota_month,
    refund_allowance,
    require_allowance,
)
from app.services.subscription import UNLIMITED, tier_config

NOW = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)
MARCH = date(2026, 3, 1)


def test_month_boundaries():
    assert quota_month(NOW) == MARCH
    assert next_month(MARCH) == datetime(2026, 4, 1, tzinfo=timezone.utc)
    assert next_month(date(2026, 12, 1)) == datetime(2027, 1, 1, tzinfo=timezone.utc)
    assert allowance_key("photos", "u1", MARCH) == "usage:photos:u1:2026-03"


@pytest.mark.parametrize("plan, voice, photos, storage", [
    ("free", 0, 0, 70),
    ("basic", 60, 0, 300),
    ("premium", 300, 50, 1800),
    ("ultimate", UNLIMITED, UNLIMITED, UNLIMITED),
])
def test_tier_allowances(plan, voice, photos, storage):
    cfg = tier_config(plan)
    assert cfg.voice_minutes_per_month == voice
    assert cfg.photos_per_month == photos
    assert cfg.memory_storage_limit == storage


def test_first_plan_with_allowance():
    assert first_plan_with("voice_minutes") == "basic"
    assert first_plan_with("photos") == "premium"


@pytest.mark.asyncio
async def test_voice_minutes_count_down_to_the_ceiling(db, counter, subscribe):
    await subscribe("u1", "basic")

    first = await check_and_consume_allowance(db, counter, "u1", "voice_minutes", 45, now=NOW)
    assert (first.allowed, first.used, first.remaining, first.limit) == (True, 45, 15, 60)
    assert counter.expiry[allowance_key("voice_minutes", "u1", MARCH)] == next_month(MARCH)

    too_long = await check_and_consume_allowance(db, counter, "u1", "voice_minutes", 20, now=NOW)
    assert not too_long.allowed
    assert too_long.reason == "quota_exceeded"
    assert (too_long.used, too_long.remaining) == (45, 15)

    rest = await check_and_consume_allowance(db, counter, "u1", "voice_minutes", 15, now=NOW)
    assert (rest.allowed, rest.remaining) == (True, 0)


@pytest.mark.asyncio
async def test_new_month_starts_fresh(db, counter, subscribe):
    await subscribe("u1", "premium")
    counter.values[allowance_key("photos", "u1", MARCH)] = 50

    assert not (await check_and_consume_allowance(db, counter, "u1", "photos", now=NOW)).allowed
    april = await check_and_consume_allowance(db, counter, "u1", "photos", now=datetime(2026, 4, 1, tzinfo=timezone.utc))
    assert (april.allowed, april.remaining) == (True, 49)


@pytest.mark.asyncio
async def test_plan_without_allowance_is_denied(db, counter):
    result = await check_and_consume_allowance(db, counter, "u1", "voice_minutes", now=NOW)
    assert not result.allowed
    assert result.reason == "not_included"
    assert counter.calls == 0

    with pytest.raises(FeatureLocked) as exc:
        await require_allowance(db, counter, "u1", "photos", now=NOW)
    assert exc.value.details["required_plan"] == "premium"
    assert exc.value.details["current_plan"] == "free"


@pytest.mark.asyncio
async def test_exhausted_allowance_retries_next_month(db, counter, subscribe):
    await subscribe("u1", "premium")
    counter.values[allowance_key("photos", "u1", MARCH)] = 50

    with pytest.raises(QuotaExceeded) as exc:
        await require_allowance(db, counter, "u1", "photos", now=NOW)
    details = exc.value.details
    assert details["limit"] == 50
    assert details["retry_after"] == int((next_month(MARCH) - NOW).total_seconds())


@pytest.mark.asyncio
async def test_counter_outage_denies_allowance(db, counter, subscribe):
    await subscribe("u1", "basic")
    counter.fail = True

    result = await check_and_consume_allowance(db, counter, "u1", "voice_minutes", now=NOW)
    assert (result.allowed, result.reason) == (False, "store_unavailable")

    with pytest.raises(TransientStoreError):
        await require_allowance(db, counter, "u1", "voice_minutes", now=NOW)


@pytest.mark.asyncio
async def test_refund_never_goes_negative(counter):
    key = allowance_key("voice_minutes", "u1", MARCH)
    counter.values[key] = 3
    assert await refund_allowance(counter, "u1", "voice_minutes", 2, MARCH) == 1
    assert await refund_allowance(counter, "u1", "voice_minutes", 5, MARCH) == 0


@pytest.mark.asyncio
async def test_usage_stats_cover_voice_photos_and_storage(db, counter, subscribe):
    await subscribe("u1", "premium")
    counter.values[allowance_key("voice_minutes", "u1", MARCH)] = 30
    counter.values[allowance_key("photos", "u1", MARCH)] = 5
    sig = Significance(score=5, type="semantic", category="general", keywords=[], reasons=[], expires_at=None)
    await create_memory(db, "u1", "likes hiking", sig)

    stats = await get_usage_stats(db, counter, "u1", now=NOW)

    assert stats["voice_minutes"]["used"] == 30
    assert stats["voice_minutes"]["percentage"] == 10.0
    assert stats["voice_minutes"]["resets_at"] == next_month(MARCH)
    assert stats["photos"]["remaining"] == 45
    assert stats["storage"]["used"] == 1
    assert stats["storage"]["limit"] == 1800
