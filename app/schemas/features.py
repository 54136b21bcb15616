from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class FeatureOut(BaseModel):
    id: str
    name: str
    description: str
    category: str
    required_plan: str
    reason: Optional[str] = None


class FeatureList(BaseModel):
    plan: str
    available: List[FeatureOut]
    locked: List[FeatureOut]


class FeatureAccess(BaseModel):
    allowed: bool
    feature: str
    plan: Optional[str] = None
    reason: Optional[str] = None
    required_plan: Optional[str] = None


class UsageEntry(BaseModel):
    used: int
    limit: int
    remaining: int
    percentage: float
    unlimited: bool
    resets_at: Optional[datetime] = None


class UsageStats(BaseModel):
    plan: str
    used: int
    limit: int
    remaining: int
    percentage: float
    unlimited: bool
    resets_at: datetime
    voice_minutes: UsageEntry
    photos: UsageEntry
    storage: UsageEntry


class AllowanceOut(BaseModel):
    allowed: bool
    kind: str
    used: int
    limit: int
    remaining: int
