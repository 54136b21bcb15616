from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Profile, ProgressionEvent


async def get_or_create_profile(db: AsyncSession, user_id: str, *, for_update: bool = False) -> Profile:
    """
    Load the user's profile, lazily creating a zeroed one on first interaction.

    Never errors on read: a missing profile is provisioned with trust 0.
    """
    q = select(Profile).where(Profile.user_id == user_id)
    if for_update:
        q = q.with_for_update().execution_options(populate_existing=True)
    res = await db.execute(q)
    profile = res.scalar_one_or_none()
    if profile:
        return profile

    now = datetime.now(timezone.utc)
    profile = Profile(
        user_id=user_id,
        trust_level=0.0,
        message_count=0,
        messages_used_today=0,
        last_message_reset=None,
        created_at=now,
        updated_at=now,
    )
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        # created concurrently by another request
        await db.rollback()
        res = await db.execute(select(Profile).where(Profile.user_id == user_id))
        return res.scalar_one()
    await db.refresh(profile)
    return profile


async def update_profile(db: AsyncSession, user_id: str, **patch: Any) -> Profile:
    """
    Apply a field patch to the profile.

    trust_level is not patchable here; it only moves through apply_trust_delta.
    """
    if "trust_level" in patch:
        raise ValueError("trust_level changes must go through apply_trust_delta")

    profile = await get_or_create_profile(db, user_id)
    for key, value in patch.items():
        if not hasattr(Profile, key):
            raise ValueError(f"Unknown profile field: {key}")
        setattr(profile, key, value)
    await db.commit()
    await db.refresh(profile)
    return profile


async def append_event(
    db: AsyncSession,
    user_id: str,
    type: str,
    description: str = "",
    trust_delta: float = 0.0,
    milestone_id: Optional[str] = None,
    *,
    commit: bool = True,
) -> ProgressionEvent:
    ev = ProgressionEvent(
        user_id=user_id,
        type=type,
        description=description or "",
        trust_delta=float(trust_delta or 0.0),
        milestone_id=milestone_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(ev)
    if commit:
        await db.commit()
        await db.refresh(ev)
    return ev


async def list_events(
    db: AsyncSession,
    user_id: str,
    limit: int = 10,
    types: Optional[Iterable[str]] = None,
) -> list[ProgressionEvent]:
    """Newest first."""
    q = select(ProgressionEvent).where(ProgressionEvent.user_id == user_id)
    if types:
        q = q.where(ProgressionEvent.type.in_(list(types)))
    q = q.order_by(ProgressionEvent.created_at.desc(), ProgressionEvent.id.desc()).limit(limit)
    res = await db.execute(q)
    return list(res.scalars().all())


async def achieved_milestones(db: AsyncSession, user_id: str) -> dict[str, datetime]:
    res = await db.execute(
        select(ProgressionEvent.milestone_id, ProgressionEvent.created_at).where(
            ProgressionEvent.user_id == user_id,
            ProgressionEvent.type == "milestone_achieved",
            ProgressionEvent.milestone_id.is_not(None),
        )
    )
    return {mid: at for mid, at in res.all()}


async def event_types_seen(db: AsyncSession, user_id: str) -> set[str]:
    res = await db.execute(
        select(ProgressionEvent.type)
        .where(ProgressionEvent.user_id == user_id)
        .distinct()
    )
    return set(res.scalars().all())
