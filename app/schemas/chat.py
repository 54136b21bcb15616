from pydantic import BaseModel, Field
from typing import List, Optional


class ChatMessageIn(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    is_voice: bool = False
    voice_minutes: int = Field(1, ge=1, le=60)


class TrustOut(BaseModel):
    trust_level: float
    delta: float
    stage: str
    stage_changed: bool
    milestones_achieved: List[str] = []


class ChatMessageOut(BaseModel):
    reply: str
    remaining_messages: int
    remaining_voice_minutes: Optional[int] = None
    memory_saved: bool
    significance: float
    trust: Optional[TrustOut] = None
