from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.db.models import Memory
from app.memory import sweep
from app.memory.keywords import categorize, extract_keywords, tokenize
from app.memory.repo import create_memory, list_expired, memory_stats, recall_memories
from app.memory.retention import compute_expiry, should_store
from app.memory.significance import Exchange, Sentiment, Significance, classify_type, score_turn
from app.memory.sweep import run_memory_sweep

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def sig(score, *, type="semantic", category="general", expires_at=None):
    return Significance(score=score, type=type, category=category, keywords=[], reasons=[], expires_at=expires_at)


class TestKeywords:
    def test_tokenize_drops_stopwords_and_short_words(self):
        assert tokenize("I am so tired of my job") == ["tired", "job"]

    def test_keywords_dedupe_in_order(self):
        assert extract_keywords("coffee, coffee and tea... then coffee with milk") == ["coffee", "tea", "milk"]

    def test_keywords_are_capped(self):
        assert extract_keywords("alpha bravo charlie delta echo foxtrot") == [
            "alpha", "bravo", "charlie", "delta", "echo"]

    def test_category_by_frequency(self):
        assert categorize(["sad", "cry", "happy"]) == "sadness"

    def test_category_ties_go_to_earlier_entry(self):
        assert categorize(["happy", "sad"]) == "joy"

    def test_category_default(self):
        assert categorize([]) == "general"
        assert categorize(["zebra"]) == "general"


class TestRetention:
    def test_threshold(self):
        assert not should_store(2.99)
        assert should_store(3.0)

    def test_high_significance_is_permanent_on_any_plan(self):
        assert compute_expiry(9, "free", NOW) is None
        assert compute_expiry(8, "basic", NOW) is None

    @pytest.mark.parametrize("plan, days", [("free", 7), ("basic", 30), ("premium", 180)])
    def test_plan_window(self, plan, days):
        assert compute_expiry(4, plan, NOW) == NOW + timedelta(days=days)

    @pytest.mark.parametrize("plan", ["ultimate", "lifetime"])
    def test_permanent_plans(self, plan):
        assert compute_expiry(4, plan, NOW) is None

    def test_unknown_plan_is_free(self):
        assert compute_expiry(4, "gold", NOW) == NOW + timedelta(days=7)


class TestSignificance:
    def test_small_talk_is_not_stored(self):
        result = score_turn(Exchange("hello there", recent_history_length=10, trust_level=50), now=NOW)
        assert result.score == 0.0
        assert not result.should_store

    def test_crisis_turn_is_permanent(self):
        crisis = Sentiment(primary_emotion="sadness", emotional_intensity=8, crisis_severity=8)
        result = score_turn(Exchange("I can't go on", sentiment=crisis, recent_history_length=10), now=NOW)

        assert result.score == 10.0
        assert result.permanent
        assert "Crisis moment - requires remembering" in result.reasons

    def test_threshold_severity_counts_as_crisis(self):
        sentiment = Sentiment(crisis_severity=5)
        assert sentiment.is_crisis

        result = score_turn(Exchange("no way out", sentiment=sentiment, recent_history_length=10, trust_level=50), now=NOW)
        assert result.score == 8.0
        assert result.should_store
        assert result.permanent

    def test_personal_facts_follow_plan_retention(self):
        text = "Please remember this: my name is Sam and I live in Denver, my sister is Ana"
        result = score_turn(Exchange(text, recent_history_length=10, trust_level=50), now=NOW)

        assert result.score == 3.5
        assert result.should_store
        assert result.expires_at == NOW + timedelta(days=7)
        assert result.type == "semantic"
        assert result.category == "family"
        assert result.keywords == ["please", "remember", "name", "sam", "live"]
        assert "User requested to remember" in result.reasons

    def test_plan_changes_expiry(self):
        text = "Please remember this: my name is Sam and I live in Denver, my sister is Ana"
        result = score_turn(Exchange(text, recent_history_length=10, trust_level=50, plan="ultimate"), now=NOW)
        assert result.expires_at is None

    def test_novelty_bonus_early_in_conversation(self):
        result = score_turn(Exchange("hello there", recent_history_length=0, trust_level=50), now=NOW)
        assert result.score == 0.5

    def test_malformed_numbers_count_as_zero(self):
        weird = Sentiment(primary_emotion="?", emotional_intensity="high", crisis_severity=None)
        result = score_turn(Exchange("hi", sentiment=weird, recent_history_length="many", trust_level=None), now=NOW)
        assert 0.0 <= result.score <= 10.0

    def test_score_is_bounded(self):
        text = ("Remember this. I've never told anyone, I trust you, I love you. "
                "My name is Kim, my mom died, I live in Rome, my favorite song")
        crisis = Sentiment(emotional_intensity=10, crisis_severity=10)
        assert score_turn(Exchange(text, sentiment=crisis), now=NOW).score == 10.0

    @pytest.mark.parametrize("text, kind", [
        ("Yesterday I went to the beach with my dad", "episodic"),
        ("The day we met was March 3", "episodic"),
        ("I prefer tea over coffee", "semantic"),
    ])
    def test_type(self, text, kind):
        assert classify_type(text) == kind


@pytest.mark.asyncio
async def test_recall_ranks_by_decayed_significance(db):
    await create_memory(db, "u1", "old fact", sig(9), created_at=NOW - timedelta(days=100))
    await create_memory(db, "u1", "fresh fact", sig(7), created_at=NOW)
    await create_memory(db, "u1", "old moment", sig(6.5, type="episodic"), created_at=NOW - timedelta(days=300))
    await create_memory(db, "u1", "minor", sig(5), created_at=NOW)
    await create_memory(db, "u1", "expired", sig(9, expires_at=NOW - timedelta(days=1)),
                        created_at=NOW - timedelta(days=10))
    await create_memory(db, "u2", "someone else", sig(9), created_at=NOW)

    recalled = await recall_memories(db, "u1", limit=5, now=NOW)
    assert [m["content"] for m in recalled] == ["fresh fact", "old moment", "old fact"]


@pytest.mark.asyncio
async def test_memory_stats(db):
    await create_memory(db, "u1", "a", sig(4, category="work"), created_at=NOW - timedelta(days=2))
    await create_memory(db, "u1", "b", sig(6, type="episodic", category="work"), created_at=NOW)

    stats = await memory_stats(db, "u1")
    assert stats["total"] == 2
    assert stats["by_type"] == {"semantic": 1, "episodic": 1}
    assert stats["by_category"] == {"work": 2}
    assert stats["average_significance"] == 5.0

    empty = await memory_stats(db, "nobody")
    assert empty["total"] == 0
    assert empty["oldest_memory"] is None


async def seed_expiring(db):
    past, future = NOW - timedelta(hours=1), NOW + timedelta(days=3)
    for user in ("u1", "u2", "u3"):
        await create_memory(db, user, f"{user} expired", sig(4, expires_at=past), created_at=NOW - timedelta(days=8))
    await create_memory(db, "u1", "u1 second expired", sig(4, expires_at=past), created_at=NOW - timedelta(days=8))
    await create_memory(db, "u1", "u1 permanent", sig(9), created_at=NOW - timedelta(days=400))
    await create_memory(db, "u2", "u2 still valid", sig(4, expires_at=future), created_at=NOW)


async def contents(session_factory):
    async with session_factory() as s:
        res = await s.execute(select(Memory.content).order_by(Memory.content))
        return list(res.scalars().all())


@pytest.mark.asyncio
async def test_sweep_deletes_only_expired(db, session_factory):
    await seed_expiring(db)
    assert len(await list_expired(db, NOW)) == 4

    report = await run_memory_sweep(session_factory, now=NOW)

    assert report.users_scanned == 3
    assert report.memories_deleted == 4
    assert report.deleted_by_user == {"u1": 2, "u2": 1, "u3": 1}
    assert report.failed_users == []
    assert await contents(session_factory) == ["u1 permanent", "u2 still valid"]


@pytest.mark.asyncio
async def test_sweep_drains_users_past_one_batch(db, session_factory):
    past = NOW - timedelta(days=1)
    for i in range(5):
        await create_memory(db, "u1", f"old {i}", sig(4, expires_at=past), created_at=NOW - timedelta(days=8))

    report = await run_memory_sweep(session_factory, now=NOW, batch_size=2)

    assert report.deleted_by_user == {"u1": 5}
    assert await contents(session_factory) == []


@pytest.mark.asyncio
async def test_sweep_is_safe_to_rerun(db, session_factory):
    await seed_expiring(db)
    await run_memory_sweep(session_factory, now=NOW)
    again = await run_memory_sweep(session_factory, now=NOW)
    assert again.users_scanned == 0
    assert again.memories_deleted == 0


@pytest.mark.asyncio
async def test_sweep_isolates_user_failures(db, session_factory, monkeypatch):
    await seed_expiring(db)
    res = await db.execute(select(Memory.id).where(Memory.user_id == "u2"))
    poisoned = set(res.scalars().all())
    real_delete = sweep.delete_memory

    async def flaky_delete(db, memory_id):
        if memory_id in poisoned:
            raise RuntimeError("corrupt record")
        return await real_delete(db, memory_id)

    monkeypatch.setattr(sweep, "delete_memory", flaky_delete)
    report = await run_memory_sweep(session_factory, now=NOW)

    assert report.failed_users == ["u2"]
    assert report.memories_deleted == 3
    assert "u2 expired" in await contents(session_factory)
    assert "u3 expired" not in await contents(session_factory)
