import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Profile
from app.memory.repo import count_memories
from app.relationship.repo import (
    achieved_milestones,
    append_event,
    event_types_seen,
    get_or_create_profile,
)
from app.relationship.stages import (
    Milestone,
    Stage,
    clamp_trust,
    current_stage,
    milestones_available,
    next_stage,
    stage_progress,
    ALL_MILESTONES,
    MILESTONE_STAGE,
)
from app.utils.infrastructure.retry import with_store_retry

log = logging.getLogger("engagement-relationship")


@dataclass
class TrustUpdate:
    old_trust: float
    new_trust: float
    applied_delta: float
    stage: Stage
    stage_changed: bool
    milestones_achieved: List[Milestone] = field(default_factory=list)


def _days_since(ts: Optional[datetime], now: datetime) -> int:
    if ts is None:
        return 0
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return max(0, (now - ts).days)


@dataclass(frozen=True)
class _ProfileView:
    # plain copy so a rollback mid-check cannot expire what we read
    trust_level: float
    message_count: int
    created_at: Optional[datetime]

    @classmethod
    def of(cls, profile: Profile) -> "_ProfileView":
        return cls(
            trust_level=float(profile.trust_level or 0.0),
            message_count=int(profile.message_count or 0),
            created_at=profile.created_at,
        )


def _criterion_met(
    m: Milestone,
    profile: _ProfileView,
    seen_events: set[str],
    memory_count: int,
    now: datetime,
) -> bool:
    if m.kind == "trust":
        return profile.trust_level >= m.threshold
    if m.kind == "message_count":
        return profile.message_count >= m.threshold
    if m.kind == "days_active":
        return _days_since(profile.created_at, now) >= m.threshold
    if m.kind == "event":
        return m.event in seen_events
    if m.kind == "memory_count":
        return memory_count >= m.threshold
    return False


async def check_milestones(db: AsyncSession, user_id: str) -> List[Milestone]:
    """
    Record newly achieved milestones and return them.

    A milestone is available once trust reaches its trust_required; it is
    achieved only once a milestone_achieved event naming it exists. Calling
    this repeatedly never records the same milestone twice.
    """
    profile = _ProfileView.of(await get_or_create_profile(db, user_id))
    now = datetime.now(timezone.utc)

    available = milestones_available(profile.trust_level)
    if not available:
        return []

    achieved = await achieved_milestones(db, user_id)
    pending = [m for m in available if m.id not in achieved]
    if not pending:
        return []

    seen = await event_types_seen(db, user_id)
    memory_count = 0
    if any(m.kind == "memory_count" for m in pending):
        memory_count = await count_memories(db, user_id)

    newly: List[Milestone] = []
    for m in pending:
        if not _criterion_met(m, profile, seen, memory_count, now):
            continue
        try:
            await append_event(db, user_id, "milestone_achieved", m.description, milestone_id=m.id)
        except IntegrityError:
            # recorded concurrently by another request
            await db.rollback()
            continue
        log.info("[REL %s] milestone achieved: %s", user_id, m.id)
        newly.append(m)

    return newly


async def apply_trust_delta(db: AsyncSession, user_id: str, delta: float, reason: str) -> TrustUpdate:
    """
    The only write path for Profile.trust_level.

    Adds `delta` (may be negative), clamps to [0, 100], persists, appends a
    trust_gained / trust_lost event (plus stage_reached when the stage changes)
    and then records any newly achieved milestones. Retries transient store
    failures.
    """

    async def _write() -> tuple[float, float]:
        profile = await get_or_create_profile(db, user_id, for_update=True)
        old = float(profile.trust_level or 0.0)
        new = clamp_trust(old + float(delta or 0.0))
        profile.trust_level = new

        await append_event(
            db,
            user_id,
            "trust_lost" if delta < 0 else "trust_gained",
            reason,
            trust_delta=round(new - old, 4),
            commit=False,
        )
        old_stage, new_stage = current_stage(old), current_stage(new)
        if old_stage.name != new_stage.name:
            await append_event(
                db,
                user_id,
                "stage_reached",
                new_stage.name,
                trust_delta=round(new - old, 4),
                commit=False,
            )
        await db.commit()
        return old, new

    old, new = await with_store_retry(_write, what="trust update", on_retry=db.rollback)

    stage = current_stage(new)
    changed = stage.name != current_stage(old).name
    log.info("[REL %s] trust %.2f -> %.2f (%+.2f) stage=%s reason=%s", user_id, old, new, delta, stage.name, reason)

    milestones = await with_store_retry(
        lambda: check_milestones(db, user_id),
        what="milestone check",
        on_retry=db.rollback,
    )
    return TrustUpdate(
        old_trust=old,
        new_trust=new,
        applied_delta=new - old,
        stage=stage,
        stage_changed=changed,
        milestones_achieved=milestones,
    )


async def record_trigger_event(db: AsyncSession, user_id: str, type: str, description: str = "") -> None:
    await with_store_retry(
        lambda: append_event(db, user_id, type, description),
        what="progression event",
        on_retry=db.rollback,
    )


async def get_stage_info(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """{current_stage, next_stage, progress, trust_level, milestones} for a user."""
    profile = await get_or_create_profile(db, user_id)
    trust = float(profile.trust_level or 0.0)
    cur = current_stage(trust)
    nxt = next_stage(cur)
    achieved = await achieved_milestones(db, user_id)

    milestones = []
    for m in ALL_MILESTONES:
        milestones.append({
            "id": m.id,
            "name": m.name,
            "description": m.description,
            "trust_required": m.trust_required,
            "stage": MILESTONE_STAGE[m.id],
            "available": trust >= m.trust_required,
            "achieved": m.id in achieved,
            "achieved_at": achieved.get(m.id),
        })

    return {
        "trust_level": round(trust, 2),
        "current_stage": cur.as_dict(),
        "next_stage": nxt.as_dict() if nxt else None,
        "progress": stage_progress(trust),
        "milestones": milestones,
    }
