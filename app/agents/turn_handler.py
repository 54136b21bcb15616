import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional
from uuid import uuid4

from langchain_community.chat_message_histories import RedisChatMessageHistory
from langchain_core.chat_history import BaseChatMessageHistory
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.prompts import build_system_prompt, get_chat_prompt, get_companion_model
from app.agents.sentiment import detect_sentiment
from app.core.config import settings
from app.core.errors import QuotaExceeded, TransientStoreError
from app.memory.repo import create_memory, recall_memories
from app.memory.significance import Exchange, Significance, score_turn
from app.relationship.engine import TurnContext, compute_trust_delta
from app.relationship.processor import TrustUpdate, apply_trust_delta, record_trigger_event
from app.relationship.repo import get_or_create_profile
from app.relationship.stages import current_stage
from app.services.feature_gate import require_feature
from app.services.quota import (
    QuotaResult,
    check_and_consume_quota,
    next_reset,
    refund_allowance,
    refund_quota,
    require_allowance,
)
from app.utils.infrastructure.counter import CounterStore
from app.utils.infrastructure.rate_limiter import enforce_rate_limit
from app.utils.infrastructure.retry import with_store_retry
from app.utils.logging.prompt_logging import log_prompt

log = logging.getLogger("engagement-turn")


def redis_history(user_id: str) -> BaseChatMessageHistory:
    return RedisChatMessageHistory(
        session_id=f"engagement:{user_id}", url=settings.REDIS_URL, ttl=settings.HISTORY_TTL)


@dataclass
class TurnResult:
    reply: str
    quota: QuotaResult
    significance: Significance
    memory_id: Optional[int] = None
    trust: Optional[TrustUpdate] = None
    triggers: List[str] = field(default_factory=list)
    voice: Optional[QuotaResult] = None


def _trigger_events(ctx: TurnContext) -> List[str]:
    events = []
    if ctx.is_personal_share:
        events.append("personal_info_shared")
    if ctx.is_vulnerable:
        events.append("vulnerability_shared")
    if ctx.is_crisis:
        events.append("crisis_supported")
    if ctx.is_celebration:
        events.append("celebration_shared")
    return events


def _trust_reason(ctx: TurnContext) -> str:
    tags = [name for name, on in (
        ("vulnerable", ctx.is_vulnerable),
        ("crisis", ctx.is_crisis),
        ("celebration", ctx.is_celebration),
        ("personal share", ctx.is_personal_share),
        ("hostile", ctx.is_hostile),
    ) if on]
    return "Conversation" + (f" ({', '.join(tags)})" if tags else "")


def _quota_denied(quota: QuotaResult) -> Exception:
    if quota.reason == "store_unavailable":
        return TransientStoreError("usage counter is temporarily unavailable")
    retry_after = None
    if quota.day is not None:
        retry_after = max(1, int((next_reset(quota.day) - datetime.now(timezone.utc)).total_seconds()))
    return QuotaExceeded(
        "Daily message limit reached",
        details={"remaining": 0, "limit": quota.limit, "plan": quota.plan, "retry_after": retry_after},
    )


async def handle_turn(
    db: AsyncSession,
    counter: CounterStore,
    user_id: str,
    message: str,
    *,
    llm: Any = None,
    history_factory: Callable[[str], BaseChatMessageHistory] = redis_history,
    is_voice: bool = False,
    voice_minutes: int = 1,
) -> TurnResult:
    """
    One inbound user message: gate -> generate -> score -> persist.

    Quota (and voice minutes for a voice turn) is consumed before generation
    and refunded if generation fails or the request is cancelled. State updates after a successful reply are
    retried; if the store stays down the reply is still returned.
    """
    cid = uuid4().hex[:8]
    log.info("[%s] START user=%s voice=%s", cid, user_id, is_voice)

    if is_voice:
        await require_feature(db, user_id, "voice_messages")

    await enforce_rate_limit(counter, "generation", f"user:{user_id}")

    voice = None
    if is_voice:
        voice = await require_allowance(db, counter, user_id, "voice_minutes", voice_minutes)

    async def _refund_voice():
        if voice is None:
            return
        try:
            await refund_allowance(counter, user_id, "voice_minutes", voice_minutes, voice.day)
        except TransientStoreError:
            log.error("[%s] voice minute refund failed for user=%s", cid, user_id)

    quota = await check_and_consume_quota(db, counter, user_id)
    if not quota.allowed:
        await _refund_voice()
        raise _quota_denied(quota)

    try:
        history = history_factory(user_id)
        profile = await get_or_create_profile(db, user_id)
        trust = float(profile.trust_level or 0.0)
        message_count = int(profile.message_count or 0)
        archetype = profile.archetype

        signals = detect_sentiment(message)
        memories = await recall_memories(db, user_id, limit=5)
        system_prompt = build_system_prompt(
            archetype, current_stage(trust), memories, crisis=signals.context.is_crisis)

        past = history.messages[-settings.MAX_HISTORY_WINDOW:]
        prompt = get_chat_prompt().format_messages(system_prompt=system_prompt, history=past, input=message)
        if settings.LOG_PROMPTS:
            log_prompt(log, prompt, cid=cid)

        model = llm or get_companion_model()
        resp = await model.ainvoke(prompt)
        reply = (getattr(resp, "content", resp) or "").strip()
    except (Exception, asyncio.CancelledError):
        log.warning("[%s] generation failed or cancelled, refunding quota", cid)
        try:
            await asyncio.shield(refund_quota(counter, user_id, quota.day))
        except TransientStoreError:
            log.error("[%s] quota refund failed for user=%s", cid, user_id)
        await asyncio.shield(_refund_voice())
        raise

    history.add_user_message(message)
    history.add_ai_message(reply)

    sig = score_turn(Exchange(
        user_message=message,
        companion_response=reply,
        sentiment=signals.sentiment,
        recent_history_length=len(past),
        trust_level=trust,
        message_count=message_count,
        plan=quota.plan or "free",
    ))
    log.info("[%s] significance=%.2f type=%s category=%s store=%s",
             cid, sig.score, sig.type, sig.category, sig.should_store)

    result = TurnResult(reply=reply, quota=quota, significance=sig, voice=voice)
    try:
        if sig.should_store:
            mem = await with_store_retry(
                lambda: create_memory(db, user_id, f"User: {message}\nResponse: {reply}", sig),
                what="memory write",
                on_retry=db.rollback,
            )
            result.memory_id = mem.id

        for ev in _trigger_events(signals.context):
            await record_trigger_event(db, user_id, ev, message[:200])
            result.triggers.append(ev)

        delta = compute_trust_delta(signals.sentiment.emotional_intensity, signals.context, trust)
        result.trust = await apply_trust_delta(db, user_id, delta, _trust_reason(signals.context))
    except TransientStoreError as ex:
        log.error("[%s] post-reply state update failed: %s", cid, ex)

    log.info("[%s] DONE remaining=%s trust=%s", cid, quota.remaining,
             f"{result.trust.new_trust:.2f}" if result.trust else "n/a")
    return result
