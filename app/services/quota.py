"""
Daily message quota and monthly voice/photo allowances.

The shared counter store is the source of truth for today's usage. Keys are
scoped to the UTC day (``quota:messages:<user>:<YYYY-MM-DD>``) and expire at
the next midnight, so the daily rollover needs no reset write and cannot race.
The profile's messages_used_today / last_message_reset are a mirror of the
counter for reporting. Monthly allowances follow the same scheme with
``usage:<kind>:<user>:<YYYY-MM>`` keys that expire at the next month.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import FeatureLocked, QuotaExceeded, TransientStoreError
from app.db.models import Profile
from app.memory.repo import count_memories
from app.relationship.repo import get_or_create_profile
from app.services.subscription import PLANS, UNLIMITED, get_tier, tier_config
from app.utils.infrastructure.counter import CounterStore
from app.utils.infrastructure.retry import with_store_retry

log = logging.getLogger("engagement-quota")

KEY_PREFIX = "quota:messages"


@dataclass(frozen=True)
class QuotaResult:
    allowed: bool
    remaining: int
    used: int = 0
    limit: int = 0
    plan: Optional[str] = None
    day: Optional[date] = None
    reason: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "used": self.used,
            "limit": self.limit,
            "plan": self.plan,
            "reason": self.reason,
        }


def quota_day(now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


def next_reset(day: date) -> datetime:
    """Start of the next UTC quota day."""
    return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)


def quota_key(user_id: str, day: date) -> str:
    return f"{KEY_PREFIX}:{user_id}:{day.isoformat()}"


async def _mirror_usage(db: AsyncSession, user_id: str, used: int, day: date) -> None:
    async def _write():
        await get_or_create_profile(db, user_id)
        await db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(
                messages_used_today=used,
                last_message_reset=day,
                message_count=Profile.message_count + 1,
            )
        )
        await db.commit()

    try:
        await with_store_retry(_write, what="usage mirror", on_retry=db.rollback)
    except TransientStoreError:
        # counter already holds the truth; the mirror catches up on the next message
        log.warning("[QUOTA] user=%s usage mirror not written", user_id)


async def check_and_consume_quota(
    db: AsyncSession,
    counter: CounterStore,
    user_id: str,
    *,
    now: Optional[datetime] = None,
) -> QuotaResult:
    """
    Atomically take one message from today's allowance.

    Denies (fails closed) when the subscription or counter store is
    unavailable after retries.
    """
    day = quota_day(now)
    try:
        plan = await get_tier(db, user_id)
    except TransientStoreError:
        log.warning("[QUOTA] user=%s denied: subscription store unavailable", user_id)
        return QuotaResult(False, 0, day=day, reason="store_unavailable")

    cfg = tier_config(plan)
    limit = cfg.daily_message_limit
    key = quota_key(user_id, day)
    boundary = next_reset(day)

    async def _consume() -> Optional[int]:
        if cfg.unlimited:
            used = await counter.incr_and_get(key)
            await counter.ttl_reset(key, boundary)
            if used > limit:
                await counter.decr_floor(key)
                return None
            return used
        return await counter.incr_with_ceiling(key, limit, boundary)

    try:
        used = await with_store_retry(_consume, what="quota counter")
    except TransientStoreError:
        log.warning("[QUOTA] user=%s denied: counter store unavailable", user_id)
        return QuotaResult(False, 0, limit=limit, plan=plan, day=day, reason="store_unavailable")

    if used is None:
        log.info("[QUOTA] user=%s plan=%s used=%s limit=%s allowed=False", user_id, plan, limit, limit)
        return QuotaResult(False, 0, used=limit, limit=limit, plan=plan, day=day, reason="quota_exceeded")

    await _mirror_usage(db, user_id, used, day)
    log.info("[QUOTA] user=%s plan=%s used=%s limit=%s allowed=True", user_id, plan, used, limit)
    return QuotaResult(True, max(0, limit - used), used=used, limit=limit, plan=plan, day=day)


async def refund_quota(counter: CounterStore, user_id: str, day: Optional[date] = None) -> int:
    """Give back one consumed message (never below zero). Returns today's usage after the refund."""
    key = quota_key(user_id, day or quota_day())
    used = await with_store_retry(lambda: counter.decr_floor(key), what="quota refund")
    log.info("[QUOTA] user=%s refunded, used=%s", user_id, used)
    return used


async def reset_quota(counter: CounterStore, user_id: str, now: Optional[datetime] = None) -> None:
    key = quota_key(user_id, quota_day(now))
    await with_store_retry(lambda: counter.reset(key), what="quota reset")
    log.info("[QUOTA] user=%s reset", user_id)


# Monthly allowances: kind -> (TierConfig field, unit label)
ALLOWANCES: Dict[str, tuple[str, str]] = {
    "voice_minutes": ("voice_minutes_per_month", "minutes"),
    "photos": ("photos_per_month", "photos"),
}
ALLOWANCE_PREFIX = "usage"


def quota_month(now: Optional[datetime] = None) -> date:
    """First day of the current UTC month."""
    return quota_day(now).replace(day=1)


def next_month(month: date) -> datetime:
    if month.month == 12:
        return datetime(month.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(month.year, month.month + 1, 1, tzinfo=timezone.utc)


def allowance_key(kind: str, user_id: str, month: date) -> str:
    return f"{ALLOWANCE_PREFIX}:{kind}:{user_id}:{month.strftime('%Y-%m')}"


def allowance_limit(plan: str, kind: str) -> int:
    field_name, _ = ALLOWANCES[kind]
    return getattr(tier_config(plan), field_name)


def first_plan_with(kind: str) -> Optional[str]:
    """Lowest plan whose allowance of `kind` is non-zero."""
    return next((p for p in PLANS if allowance_limit(p, kind) > 0), None)


async def check_and_consume_allowance(
    db: AsyncSession,
    counter: CounterStore,
    user_id: str,
    kind: str,
    amount: int = 1,
    *,
    now: Optional[datetime] = None,
) -> QuotaResult:
    """
    Take `amount` units of this month's voice-minute or photo allowance.

    Same contract as the daily quota: atomic against the ceiling, month-scoped
    keys that expire at the next month, denied when either store is down.
    A plan without the allowance is denied with reason "not_included".
    """
    if kind not in ALLOWANCES:
        raise ValueError(f"Unknown allowance: {kind}")
    month = quota_month(now)
    try:
        plan = await get_tier(db, user_id)
    except TransientStoreError:
        log.warning("[QUOTA] user=%s %s denied: subscription store unavailable", user_id, kind)
        return QuotaResult(False, 0, day=month, reason="store_unavailable")

    limit = allowance_limit(plan, kind)
    if limit <= 0:
        return QuotaResult(False, 0, limit=0, plan=plan, day=month, reason="not_included")

    key = allowance_key(kind, user_id, month)

    async def _consume() -> tuple[Optional[int], int]:
        used = await counter.incr_with_ceiling(key, limit, next_month(month), amount)
        if used is None:
            return None, await counter.get(key)
        return used, used

    try:
        used, current = await with_store_retry(_consume, what=f"{kind} allowance")
    except TransientStoreError:
        log.warning("[QUOTA] user=%s %s denied: counter store unavailable", user_id, kind)
        return QuotaResult(False, 0, limit=limit, plan=plan, day=month, reason="store_unavailable")

    if used is None:
        log.info("[QUOTA] user=%s plan=%s %s=%s+%s limit=%s allowed=False",
                 user_id, plan, kind, current, amount, limit)
        return QuotaResult(False, max(0, limit - current), used=current, limit=limit, plan=plan,
                           day=month, reason="quota_exceeded")

    log.info("[QUOTA] user=%s plan=%s %s=%s limit=%s allowed=True", user_id, plan, kind, used, limit)
    return QuotaResult(True, max(0, limit - used), used=used, limit=limit, plan=plan, day=month)


async def require_allowance(
    db: AsyncSession,
    counter: CounterStore,
    user_id: str,
    kind: str,
    amount: int = 1,
    *,
    now: Optional[datetime] = None,
) -> QuotaResult:
    """check_and_consume_allowance, raising on denial."""
    result = await check_and_consume_allowance(db, counter, user_id, kind, amount, now=now)
    if result.allowed:
        return result
    if result.reason == "store_unavailable":
        raise TransientStoreError("usage counter is temporarily unavailable")
    _, unit = ALLOWANCES[kind]
    if result.reason == "not_included":
        raise FeatureLocked(
            f"Monthly {unit} are not included in your plan",
            details={"allowance": kind, "current_plan": result.plan, "required_plan": first_plan_with(kind)},
        )
    reset_at = next_month(result.day)
    retry_after = max(1, int((reset_at - (now or datetime.now(timezone.utc))).total_seconds()))
    raise QuotaExceeded(
        f"Monthly {unit} limit reached ({result.limit}/month)",
        details={
            "allowance": kind,
            "remaining": result.remaining,
            "limit": result.limit,
            "plan": result.plan,
            "retry_after": retry_after,
        },
    )


async def refund_allowance(
    counter: CounterStore,
    user_id: str,
    kind: str,
    amount: int = 1,
    month: Optional[date] = None,
) -> int:
    key = allowance_key(kind, user_id, month or quota_month())
    used = await with_store_retry(lambda: counter.decr_floor(key, amount), what=f"{kind} refund")
    log.info("[QUOTA] user=%s %s refunded %s, used=%s", user_id, kind, amount, used)
    return used


def _usage_entry(used: int, limit: int) -> Dict[str, Any]:
    unlimited = limit >= UNLIMITED
    return {
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
        "percentage": 0.0 if unlimited or limit <= 0 else round(min(100.0, used / limit * 100.0), 1),
        "unlimited": unlimited,
    }


async def get_usage_stats(
    db: AsyncSession,
    counter: CounterStore,
    user_id: str,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Today's messages plus this month's voice/photo use and stored memories, without consuming anything."""
    day = quota_day(now)
    month = quota_month(now)
    plan = await get_tier(db, user_id)
    cfg = tier_config(plan)

    async def _read() -> tuple[int, int, int]:
        return (
            await counter.get(quota_key(user_id, day)),
            await counter.get(allowance_key("voice_minutes", user_id, month)),
            await counter.get(allowance_key("photos", user_id, month)),
        )

    used, voice, photos = await with_store_retry(_read, what="quota counter")
    stored = await with_store_retry(lambda: count_memories(db, user_id), what="memory count", on_retry=db.rollback)

    messages = _usage_entry(used, cfg.daily_message_limit)
    return {
        "plan": plan,
        **messages,
        "resets_at": next_reset(day),
        "voice_minutes": {**_usage_entry(voice, cfg.voice_minutes_per_month), "resets_at": next_month(month)},
        "photos": {**_usage_entry(photos, cfg.photos_per_month), "resets_at": next_month(month)},
        "storage": _usage_entry(stored, cfg.memory_storage_limit),
    }
