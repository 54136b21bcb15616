from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.features import FeatureAccess, FeatureList
from app.services.feature_gate import check_feature, list_features
from app.utils.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/features", tags=["features"])


@router.get("", response_model=FeatureList)
async def get_features(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await list_features(db, user_id)


@router.get("/{feature_id}", response_model=FeatureAccess)
async def get_feature_access(
    feature_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await check_feature(db, user_id, feature_id)
    return result.as_dict()
