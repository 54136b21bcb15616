from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.relationship.processor import get_stage_info
from app.relationship.repo import list_events
from app.schemas.relationship import ProgressionEventOut, StageInfo
from app.utils.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/relationship", tags=["relationship"])

HISTORY_TYPES = ("trust_gained", "trust_lost", "milestone_achieved", "stage_reached")


@router.get("/stage", response_model=StageInfo)
async def get_relationship_stage(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await get_stage_info(db, user_id)


@router.get("/history", response_model=list[ProgressionEventOut])
async def get_relationship_history(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await list_events(db, user_id, limit=limit, types=HISTORY_TYPES)
