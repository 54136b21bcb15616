from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.prompts import get_companion_model
from app.agents.turn_handler import handle_turn, redis_history
from app.db.session import get_db
from app.schemas.chat import ChatMessageIn, ChatMessageOut, TrustOut
from app.utils.auth.dependencies import get_current_user_id
from app.utils.infrastructure.counter import CounterStore, get_counter_store

router = APIRouter(prefix="/chat", tags=["chat"])


def get_llm():
    return get_companion_model()


def get_history_factory():
    return redis_history


@router.post("/message", response_model=ChatMessageOut)
async def post_message(
    data: ChatMessageIn,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    counter: CounterStore = Depends(get_counter_store),
    llm=Depends(get_llm),
    history_factory=Depends(get_history_factory),
):
    result = await handle_turn(
        db,
        counter,
        user_id,
        data.message,
        llm=llm,
        history_factory=history_factory,
        is_voice=data.is_voice,
        voice_minutes=data.voice_minutes,
    )

    trust = None
    if result.trust is not None:
        trust = TrustOut(
            trust_level=round(result.trust.new_trust, 2),
            delta=round(result.trust.applied_delta, 3),
            stage=result.trust.stage.name,
            stage_changed=result.trust.stage_changed,
            milestones_achieved=[m.id for m in result.trust.milestones_achieved],
        )

    return ChatMessageOut(
        reply=result.reply,
        remaining_messages=result.quota.remaining,
        remaining_voice_minutes=result.voice.remaining if result.voice else None,
        memory_saved=result.memory_id is not None,
        significance=result.significance.score,
        trust=trust,
    )
