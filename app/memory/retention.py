from datetime import datetime, timedelta, timezone
from typing import Optional

from app.services.subscription import tier_config

MIN_STORE_SCORE = 3.0   # below this a turn is not remembered at all
PERMANENT_SCORE = 8.0   # at or above this a memory never expires, on any plan


def should_store(score: float) -> bool:
    return score >= MIN_STORE_SCORE


def retention_days(plan: str) -> int:
    return tier_config(plan).memory_retention_days


def compute_expiry(score: float, plan: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    When a memory created now should expire; None means never.

    High-significance memories are permanent regardless of plan. Otherwise the
    plan's retention window applies, and plans with permanent retention keep
    everything.
    """
    if score >= PERMANENT_SCORE:
        return None
    days = retention_days(plan)
    if days < 0:
        return None
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=days)
