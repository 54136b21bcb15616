import logging
from fastapi import APIRouter, Depends

from app.db.session import get_session_factory
from app.memory.sweep import run_memory_sweep
from app.schemas.memory import SweepOut
from app.services.quota import reset_quota
from app.utils.auth.dependencies import require_cron_secret
from app.utils.infrastructure.counter import CounterStore, get_counter_store

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_cron_secret)])
log = logging.getLogger("engagement-admin")


@router.post("/memories/sweep", response_model=SweepOut)
async def trigger_memory_sweep(session_factory=Depends(get_session_factory)):
    report = await run_memory_sweep(session_factory)
    log.info("[ADMIN] memory sweep triggered: deleted=%s failed=%s",
             report.memories_deleted, len(report.failed_users))
    return report.as_dict()


@router.post("/usage/{user_id}/reset")
async def reset_user_quota(user_id: str, counter: CounterStore = Depends(get_counter_store)):
    await reset_quota(counter, user_id)
    log.info("[ADMIN] quota reset for user=%s", user_id)
    return {"ok": True, "user_id": user_id}
