from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import FeatureLocked, TransientStoreError
from app.db.models import Subscription
from app.relationship.repo import get_or_create_profile
from app.services import feature_gate
from app.services.feature_gate import (
    FEATURES,
    TIER_FEATURES,
    check_feature,
    evaluate_feature,
    list_features,
    require_feature,
)
from app.services.subscription import (
    UNLIMITED,
    get_tier,
    get_tier_config,
    normalize_plan,
    plan_at_least,
    resolve_plan,
    tier_config,
)


class TestPlans:
    @pytest.mark.parametrize("plan, limit", [("free", 50), ("basic", 200), ("premium", UNLIMITED), ("ultimate", UNLIMITED)])
    def test_daily_limits(self, plan, limit):
        assert tier_config(plan).daily_message_limit == limit

    def test_lifetime_is_ultimate(self):
        assert normalize_plan("lifetime") == "ultimate"
        assert normalize_plan(" Premium ") == "premium"
        assert normalize_plan(None) == "free"
        assert normalize_plan("gold") == "free"

    def test_hierarchy(self):
        assert plan_at_least("premium", "basic")
        assert not plan_at_least("basic", "premium")
        assert plan_at_least("lifetime", "ultimate")

    def test_resolve_plan(self):
        now = datetime.now(timezone.utc)
        assert resolve_plan(None) == "free"
        assert resolve_plan(Subscription(plan="lifetime", status="active")) == "ultimate"
        assert resolve_plan(Subscription(plan="basic", status="trialing")) == "basic"
        assert resolve_plan(Subscription(plan="premium", status="canceled")) == "free"
        assert resolve_plan(Subscription(plan="premium", status="active",
                                         current_period_end=now - timedelta(days=1)), now) == "free"
        naive_future = (now + timedelta(days=3)).replace(tzinfo=None)
        assert resolve_plan(Subscription(plan="premium", status="active",
                                         current_period_end=naive_future), now) == "premium"


@pytest.mark.asyncio
async def test_missing_subscription_is_free(db):
    assert await get_tier(db, "nobody") == "free"


@pytest.mark.asyncio
async def test_plan_change_applies_on_next_read(db, subscribe):
    await subscribe("u1", "basic")
    assert await get_tier(db, "u1") == "basic"

    await subscribe("u1", "premium")
    assert await get_tier(db, "u1") == "premium"

    await subscribe("u1", "premium", status="canceled")
    assert await get_tier(db, "u1") == "free"


@pytest.mark.asyncio
async def test_get_tier_raises_after_retries(db, monkeypatch):
    calls = []

    async def down(*args, **kwargs):
        calls.append(1)
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "execute", down)
    with pytest.raises(TransientStoreError):
        await get_tier(db, "u1")
    assert len(calls) == 3


class TestFeatureTable:
    def test_tiers_are_nested(self):
        assert TIER_FEATURES["free"] <= TIER_FEATURES["basic"] <= TIER_FEATURES["premium"] <= TIER_FEATURES["ultimate"]
        assert TIER_FEATURES["ultimate"] == frozenset(FEATURES)

    def test_evaluate(self):
        assert evaluate_feature("basic", "voice_messages").allowed
        denied = evaluate_feature("free", "voice_messages")
        assert not denied.allowed
        assert denied.required_plan == "basic"
        assert evaluate_feature("premium", "unlimited_messages").allowed

    def test_unknown_feature(self):
        result = evaluate_feature("ultimate", "teleportation")
        assert not result.allowed
        assert result.reason == "unknown_feature"


@pytest.mark.asyncio
@pytest.mark.parametrize("trust", [0.0, 100.0])
async def test_access_ignores_trust(db, subscribe, trust):
    profile = await get_or_create_profile(db, "u1")
    profile.trust_level = trust
    await db.commit()

    assert not (await check_feature(db, "u1", "voice_messages")).allowed
    await subscribe("u1", "basic")
    assert (await check_feature(db, "u1", "voice_messages")).allowed
    assert not (await check_feature(db, "u1", "video_calls")).allowed


@pytest.mark.asyncio
async def test_feature_check_fails_closed(db, monkeypatch):
    async def down(db, user_id):
        raise TransientStoreError("subscription lookup is temporarily unavailable")

    monkeypatch.setattr(feature_gate, "get_tier", down)
    result = await check_feature(db, "u1", "voice_messages")
    assert not result.allowed
    assert result.reason == "store_unavailable"

    with pytest.raises(TransientStoreError):
        await require_feature(db, "u1", "voice_messages")


@pytest.mark.asyncio
async def test_require_feature_details(db):
    with pytest.raises(FeatureLocked) as exc:
        await require_feature(db, "u1", "voice_messages")
    assert exc.value.details == {
        "feature": "voice_messages",
        "required_plan": "basic",
        "current_plan": "free",
    }


@pytest.mark.asyncio
async def test_list_features(db, subscribe):
    free = await list_features(db, "u1")
    assert free["plan"] == "free"
    assert free["available"] == []
    assert len(free["locked"]) == len(FEATURES)

    await subscribe("u1", "premium")
    premium = await list_features(db, "u1")
    ids = {f["id"] for f in premium["available"]}
    assert "unlimited_messages" in ids
    assert "video_calls" not in ids


@pytest.mark.asyncio
async def test_basic_tier_limit_is_200(db, subscribe):
    await subscribe("u1", "basic")
    cfg = await get_tier_config(db, "u1")
    assert cfg.daily_message_limit == 200
