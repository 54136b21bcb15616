from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.memory.repo import memory_stats, recall_memories
from app.schemas.memory import MemoryStats, RecallOut
from app.utils.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/memories", tags=["memories"])


@router.get("/stats", response_model=MemoryStats)
async def get_memory_stats(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await memory_stats(db, user_id)


@router.get("/recall", response_model=RecallOut)
async def get_recalled_memories(
    limit: int = Query(5, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return {"memories": await recall_memories(db, user_id, limit=limit)}
