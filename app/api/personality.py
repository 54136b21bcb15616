from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.personality.processor import submit_quiz
from app.schemas.personality import QuizResult, QuizSubmission
from app.utils.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/personality", tags=["personality"])


@router.post("/quiz", response_model=QuizResult)
async def submit_personality_quiz(
    data: QuizSubmission,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await submit_quiz(db, user_id, [a.model_dump() for a in data.answers])
