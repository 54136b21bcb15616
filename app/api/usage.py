from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.features import AllowanceOut, UsageStats
from app.services.feature_gate import require_feature
from app.services.quota import get_usage_stats, require_allowance
from app.utils.auth.dependencies import get_current_user_id
from app.utils.infrastructure.counter import CounterStore, get_counter_store
from app.utils.infrastructure.rate_limiter import rate_limit

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("", response_model=UsageStats)
async def get_usage(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    counter: CounterStore = Depends(get_counter_store),
):
    return await get_usage_stats(db, counter, user_id)


@router.post("/photos", response_model=AllowanceOut, dependencies=[Depends(rate_limit("upload"))])
async def record_photo_share(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    counter: CounterStore = Depends(get_counter_store),
):
    """Count one shared photo against the monthly allowance. The upload itself lives elsewhere."""
    await require_feature(db, user_id, "photo_sharing")
    result = await require_allowance(db, counter, user_id, "photos")
    return AllowanceOut(
        allowed=True,
        kind="photos",
        used=result.used,
        limit=result.limit,
        remaining=result.remaining,
    )
