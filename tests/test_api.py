import time
from datetime import datetime, timedelta, timezone

import pytest

from app.memory.repo import create_memory
from app.memory.significance import Significance
from app.services.quota import quota_day, quota_key
from app.utils.infrastructure.rate_limiter import RATE_LIMITS, rate_limit_key

CRON = {"Authorization": "Bearer test-cron-secret"}
QUIZ = {"answers": [{"question_id": 1, "traits": {"social": 2}}, {"question_id": 2, "traits": {"empathetic": 2}}]}


def today_key(user_id):
    return quota_key(user_id, quota_day(datetime.now(timezone.utc)))


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"ok": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [
    ("post", "/personality/quiz"),
    ("get", "/relationship/stage"),
    ("post", "/chat/message"),
    ("get", "/features"),
    ("get", "/usage"),
    ("post", "/usage/photos"),
    ("get", "/memories/stats"),
])
async def test_requires_auth(client, method, path):
    resp = await client.request(method.upper(), path, json={})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_quiz(client, auth):
    resp = await client.post("/personality/quiz", json=QUIZ, headers=auth("u1"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["archetype"] == "warm_empath"
    assert body["attachment_style"] == "secure"
    assert body["milestones_achieved"] == ["personality_revealed"]


@pytest.mark.asyncio
async def test_quiz_validation_error_contract(client, auth):
    bad = {"answers": [{"question_id": 1, "traits": {"feeling": 50}}]}
    resp = await client.post("/personality/quiz", json=bad, headers=auth("u1"))
    assert resp.status_code == 400
    body = resp.json()
    assert body["ok"] is False
    assert body["code"] == "validation_error"
    assert body["details"] == {"index": 0, "trait": "feeling"}


@pytest.mark.asyncio
async def test_chat_message(client, auth):
    resp = await client.post("/chat/message", json={"message": "hi there"}, headers=auth("u1"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["reply"] == "I'm here with you."
    assert body["remaining_messages"] == 49
    assert body["memory_saved"] is False
    assert body["trust"]["delta"] > 0
    assert "first_conversation" in body["trust"]["milestones_achieved"]

    history = await client.get("/relationship/history", headers=auth("u1"))
    types = [e["type"] for e in history.json()]
    assert "trust_gained" in types
    assert "milestone_achieved" in types

    usage = await client.get("/usage", headers=auth("u1"))
    assert usage.json()["used"] == 1


@pytest.mark.asyncio
async def test_chat_quota_exceeded(client, auth, counter, llm):
    counter.values[today_key("u1")] = 50
    resp = await client.post("/chat/message", json={"message": "hi"}, headers=auth("u1"))

    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) > 0
    assert resp.json()["code"] == "quota_exceeded"
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_chat_voice_locked(client, auth):
    resp = await client.post("/chat/message", json={"message": "hi", "is_voice": True}, headers=auth("u1"))
    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "feature_locked"
    assert body["details"]["required_plan"] == "basic"


@pytest.mark.asyncio
async def test_chat_store_unavailable(client, auth, counter):
    counter.fail = True
    resp = await client.post("/chat/message", json={"message": "hi"}, headers=auth("u1"))
    assert resp.status_code == 503
    assert resp.json()["code"] == "store_unavailable"


@pytest.mark.asyncio
async def test_empty_message_rejected(client, auth):
    resp = await client.post("/chat/message", json={"message": ""}, headers=auth("u1"))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_stage(client, auth):
    resp = await client.get("/relationship/stage", headers=auth("u1"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["current_stage"]["name"] == "Initial Connection"
    assert body["next_stage"]["min_trust"] == 20
    assert len(body["milestones"]) == 16


@pytest.mark.asyncio
async def test_features(client, auth, subscribe):
    await subscribe("u1", "basic")
    listing = (await client.get("/features", headers=auth("u1"))).json()
    assert listing["plan"] == "basic"
    assert "voice_messages" in {f["id"] for f in listing["available"]}

    one = (await client.get("/features/video_calls", headers=auth("u1"))).json()
    assert one["allowed"] is False
    assert one["required_plan"] == "ultimate"


@pytest.mark.asyncio
async def test_memories(client, auth, db):
    await create_memory(db, "u1", "Loves hiking", Significance(
        score=7, type="semantic", category="interests", keywords=["hiking"], reasons=[], expires_at=None))

    stats = (await client.get("/memories/stats", headers=auth("u1"))).json()
    assert stats["total"] == 1

    recall = (await client.get("/memories/recall", headers=auth("u1"))).json()
    assert [m["content"] for m in recall["memories"]] == ["Loves hiking"]


@pytest.mark.asyncio
async def test_admin_needs_cron_secret(client, auth):
    assert (await client.post("/admin/memories/sweep")).status_code == 401
    assert (await client.post("/admin/memories/sweep", headers=auth("u1"))).status_code == 401


@pytest.mark.asyncio
async def test_admin_sweep(client, db):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    await create_memory(db, "u1", "stale", Significance(
        score=4, type="semantic", category="general", keywords=[], reasons=[], expires_at=past))

    resp = await client.post("/admin/memories/sweep", headers=CRON)
    assert resp.status_code == 200
    assert resp.json()["memories_deleted"] == 1


@pytest.mark.asyncio
async def test_admin_quota_reset(client, auth, counter):
    counter.values[today_key("u1")] = 50
    resp = await client.post("/admin/usage/u1/reset", headers=CRON)
    assert resp.status_code == 200

    usage = (await client.get("/usage", headers=auth("u1"))).json()
    assert usage["used"] == 0


@pytest.mark.asyncio
async def test_readiness_reports_counter_store(client, monkeypatch):
    from app import main

    async def down():
        return False

    monkeypatch.setattr(main, "redis_ready", down)
    resp = await client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.json()["code"] == "store_unavailable"


@pytest.mark.asyncio
async def test_photo_allowance(client, auth, subscribe):
    free = await client.post("/usage/photos", headers=auth("u1"))
    assert free.status_code == 403
    assert free.json()["details"]["feature"] == "photo_sharing"

    await subscribe("u1", "basic")
    basic = await client.post("/usage/photos", headers=auth("u1"))
    assert basic.status_code == 403
    assert basic.json()["details"]["required_plan"] == "premium"

    await subscribe("u1", "premium")
    premium = await client.post("/usage/photos", headers=auth("u1"))
    assert premium.status_code == 200
    assert premium.json() == {"allowed": True, "kind": "photos", "used": 1, "limit": 50, "remaining": 49}

    usage = (await client.get("/usage", headers=auth("u1"))).json()
    assert usage["photos"]["used"] == 1


@pytest.mark.asyncio
async def test_voice_chat_reports_minutes(client, auth, subscribe):
    await subscribe("u1", "basic")
    resp = await client.post(
        "/chat/message", json={"message": "hi", "is_voice": True, "voice_minutes": 3}, headers=auth("u1"))
    assert resp.status_code == 200
    assert resp.json()["remaining_voice_minutes"] == 57


@pytest.mark.asyncio
async def test_api_rate_limit(client, auth, counter):
    counter.windows[rate_limit_key("api", "user:u1")] = [time.time()] * RATE_LIMITS["api"].max_requests

    resp = await client.get("/usage", headers=auth("u1"))
    assert resp.status_code == 429
    assert resp.json()["code"] == "rate_limited"
    assert int(resp.headers["Retry-After"]) >= 1

    other = await client.get("/usage", headers=auth("u2"))
    assert other.status_code == 200
