from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Memory

RECALL_MIN_SIGNIFICANCE = 6.0
DECAY_HORIZON_DAYS = 180.0
DECAY_FLOOR = 0.3


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


async def create_memory(db: AsyncSession, user_id: str, content: str, sig, *, created_at: Optional[datetime] = None) -> Memory:
    mem = Memory(
        user_id=user_id,
        content=content,
        category=sig.category,
        significance=sig.score,
        type=sig.type,
        keywords=list(sig.keywords),
        reasons=list(sig.reasons),
        created_at=created_at or datetime.now(timezone.utc),
        expires_at=sig.expires_at,
    )
    db.add(mem)
    await db.commit()
    await db.refresh(mem)
    return mem


async def list_expired(db: AsyncSession, now: datetime, user_id: Optional[str] = None, limit: int = 1000) -> List[Memory]:
    """Memories with a non-null expires_at that has passed."""
    q = select(Memory).where(Memory.expires_at.is_not(None), Memory.expires_at < now)
    if user_id is not None:
        q = q.where(Memory.user_id == user_id)
    res = await db.execute(q.order_by(Memory.expires_at).limit(limit))
    return list(res.scalars().all())


async def users_with_expired(db: AsyncSession, now: datetime) -> List[str]:
    res = await db.execute(
        select(Memory.user_id)
        .where(Memory.expires_at.is_not(None), Memory.expires_at < now)
        .distinct()
    )
    return list(res.scalars().all())


async def delete_memory(db: AsyncSession, memory_id: int) -> bool:
    res = await db.execute(delete(Memory).where(Memory.id == memory_id))
    await db.commit()
    return (res.rowcount or 0) > 0


async def count_memories(db: AsyncSession, user_id: str) -> int:
    res = await db.execute(select(func.count(Memory.id)).where(Memory.user_id == user_id))
    return int(res.scalar_one())


async def memory_stats(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    res = await db.execute(
        select(Memory.type, Memory.category, Memory.significance, Memory.created_at)
        .where(Memory.user_id == user_id)
    )
    rows = res.all()

    by_type: Dict[str, int] = {}
    by_category: Dict[str, int] = {}
    for t, c, _, _ in rows:
        by_type[t] = by_type.get(t, 0) + 1
        by_category[c] = by_category.get(c, 0) + 1

    return {
        "total": len(rows),
        "by_type": by_type,
        "by_category": by_category,
        "oldest_memory": min((r[3] for r in rows), default=None),
        "average_significance": round(sum(r[2] for r in rows) / len(rows), 2) if rows else 0.0,
    }


def decay_factor(mem: Memory, now: datetime) -> float:
    """Non-episodic memories fade linearly over ~6 months, never below 0.3."""
    if mem.type == "episodic":
        return 1.0
    age_days = max(0.0, (now - _aware(mem.created_at)).total_seconds() / 86400.0)
    return max(DECAY_FLOOR, 1.0 - age_days / DECAY_HORIZON_DAYS)


async def recall_memories(db: AsyncSession, user_id: str, limit: int = 5, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Recent significant, unexpired memories ranked by significance x decay."""
    now = now or datetime.now(timezone.utc)
    res = await db.execute(
        select(Memory)
        .where(
            Memory.user_id == user_id,
            Memory.significance >= RECALL_MIN_SIGNIFICANCE,
            or_(Memory.expires_at.is_(None), Memory.expires_at > now),
        )
        .order_by(Memory.created_at.desc())
        .limit(limit * 4)
    )
    ranked = []
    for mem in res.scalars().all():
        ranked.append({
            "id": mem.id,
            "content": mem.content,
            "category": mem.category,
            "type": mem.type,
            "significance": mem.significance,
            "relevance": round(mem.significance * decay_factor(mem, now), 3),
            "created_at": mem.created_at,
            "expires_at": mem.expires_at,
        })
    ranked.sort(key=lambda m: m["relevance"], reverse=True)
    return ranked[:limit]
