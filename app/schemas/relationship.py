from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class StageOut(BaseModel):
    name: str
    min_trust: float
    description: str
    unlocks: List[str]
    behaviors: List[str]


class MilestoneOut(BaseModel):
    id: str
    name: str
    description: str
    trust_required: float
    stage: str
    available: bool
    achieved: bool
    achieved_at: Optional[datetime] = None


class StageInfo(BaseModel):
    trust_level: float
    current_stage: StageOut
    next_stage: Optional[StageOut] = None
    progress: float
    milestones: List[MilestoneOut]


class ProgressionEventOut(BaseModel):
    id: int
    type: str
    description: str
    trust_delta: float
    milestone_id: Optional[str] = None
    created_at: datetime
    class Config:
        from_attributes = True
