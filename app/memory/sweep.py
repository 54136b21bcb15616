"""
Memory retention sweep.

Deletes memories whose expiry has passed, one user at a time. Each user gets
its own session so one bad record cannot stop retention for everyone else.
Safe to run concurrently with itself: deleting an already deleted memory is a
no-op.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.db.session import SessionLocal
from app.memory.repo import delete_memory, list_expired, users_with_expired
from app.utils.infrastructure.retry import with_store_retry

log = logging.getLogger("engagement-memory-sweep")

SWEEP_BATCH_SIZE = 1000


@dataclass
class SweepReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    users_scanned: int = 0
    memories_deleted: int = 0
    deleted_by_user: Dict[str, int] = field(default_factory=dict)
    failed_users: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "users_scanned": self.users_scanned,
            "memories_deleted": self.memories_deleted,
            "deleted_by_user": dict(self.deleted_by_user),
            "failed_users": list(self.failed_users),
        }


async def _sweep_user(session_factory, user_id: str, now: datetime, batch_size: int) -> int:
    deleted = 0
    async with session_factory() as db:
        while True:
            expired = await with_store_retry(
                lambda: list_expired(db, now, user_id=user_id, limit=batch_size),
                what="expired memory listing",
                on_retry=db.rollback,
            )
            batch_deleted = 0
            for mem in expired:
                mem_id = mem.id
                if await with_store_retry(
                    lambda: delete_memory(db, mem_id),
                    what="memory delete",
                    on_retry=db.rollback,
                ):
                    batch_deleted += 1
            deleted += batch_deleted
            # a short or fully contended batch means nothing is left for this user
            if len(expired) < batch_size or not batch_deleted:
                return deleted


async def run_memory_sweep(
    session_factory=None,
    now: Optional[datetime] = None,
    batch_size: int = SWEEP_BATCH_SIZE,
) -> SweepReport:
    session_factory = session_factory or SessionLocal
    now = now or datetime.now(timezone.utc)
    report = SweepReport(started_at=datetime.now(timezone.utc))

    async with session_factory() as db:
        user_ids = await with_store_retry(
            lambda: users_with_expired(db, now),
            what="sweep user scan",
            on_retry=db.rollback,
        )

    log.info("[SWEEP] start users=%d cutoff=%s", len(user_ids), now.isoformat())

    for user_id in user_ids:
        report.users_scanned += 1
        try:
            n = await _sweep_user(session_factory, user_id, now, batch_size)
        except Exception:
            log.exception("[SWEEP] user=%s failed, continuing", user_id)
            report.failed_users.append(user_id)
            continue
        report.deleted_by_user[user_id] = n
        report.memories_deleted += n

    report.finished_at = datetime.now(timezone.utc)
    log.info(
        "[SWEEP] done users=%d deleted=%d failed=%d",
        report.users_scanned, report.memories_deleted, len(report.failed_users),
    )
    return report
