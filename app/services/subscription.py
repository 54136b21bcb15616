"""
Subscription tiers.

The Subscription row is the single source of truth for a user's plan. It is
read fresh on every gate/quota check; nothing here caches a plan across
requests, so a plan change takes effect on the next request.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Subscription
from app.utils.infrastructure.retry import with_store_retry

log = logging.getLogger("engagement-subscription")

# Very large finite limit for unlimited plans
UNLIMITED = 999_999
PERMANENT = -1
MEMORIES_PER_RETENTION_DAY = 10

PLANS = ("free", "basic", "premium", "ultimate")
PLAN_HIERARCHY = {plan: rank for rank, plan in enumerate(PLANS)}
PLAN_ALIASES = {"lifetime": "ultimate"}
ACTIVE_STATUSES = ("active", "trialing")


@dataclass(frozen=True)
class TierConfig:
    plan: str
    daily_message_limit: int
    memory_retention_days: int  # -1 = permanent
    voice_minutes_per_month: int = 0
    photos_per_month: int = 0

    @property
    def unlimited(self) -> bool:
        return self.daily_message_limit >= UNLIMITED

    @property
    def permanent_memory(self) -> bool:
        return self.memory_retention_days == PERMANENT

    @property
    def memory_storage_limit(self) -> int:
        """Stored-memory allowance: about ten memories per retention day."""
        if self.permanent_memory:
            return UNLIMITED
        return self.memory_retention_days * MEMORIES_PER_RETENTION_DAY


TIER_CONFIG: dict[str, TierConfig] = {
    "free": TierConfig("free", daily_message_limit=50, memory_retention_days=7),
    "basic": TierConfig(
        "basic", daily_message_limit=200, memory_retention_days=30,
        voice_minutes_per_month=60,
    ),
    "premium": TierConfig(
        "premium", daily_message_limit=UNLIMITED, memory_retention_days=180,
        voice_minutes_per_month=300, photos_per_month=50,
    ),
    "ultimate": TierConfig(
        "ultimate", daily_message_limit=UNLIMITED, memory_retention_days=PERMANENT,
        voice_minutes_per_month=UNLIMITED, photos_per_month=UNLIMITED,
    ),
}


def normalize_plan(plan: Optional[str]) -> str:
    p = (plan or "free").strip().lower()
    p = PLAN_ALIASES.get(p, p)
    return p if p in TIER_CONFIG else "free"


def tier_config(plan: Optional[str]) -> TierConfig:
    return TIER_CONFIG[normalize_plan(plan)]


def plan_at_least(plan: str, required: str) -> bool:
    return PLAN_HIERARCHY[normalize_plan(plan)] >= PLAN_HIERARCHY[normalize_plan(required)]


def resolve_plan(sub: Optional[Subscription], now: Optional[datetime] = None) -> str:
    """Effective plan for a subscription row; lapsed or missing subscriptions are free."""
    if sub is None:
        return "free"
    if (sub.status or "").lower() not in ACTIVE_STATUSES:
        return "free"
    if sub.current_period_end is not None:
        now = now or datetime.now(timezone.utc)
        end = sub.current_period_end
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if end < now:
            return "free"
    return normalize_plan(sub.plan)


async def get_tier(db: AsyncSession, user_id: str) -> str:
    """Current plan, read fresh from the subscription store."""

    async def _read() -> Optional[Subscription]:
        res = await db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return res.scalar_one_or_none()

    sub = await with_store_retry(_read, what="subscription lookup", on_retry=db.rollback)
    plan = resolve_plan(sub)
    log.debug("[TIER] user=%s plan=%s", user_id, plan)
    return plan


async def get_tier_config(db: AsyncSession, user_id: str) -> TierConfig:
    return tier_config(await get_tier(db, user_id))
