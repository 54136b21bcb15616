from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime


class MemoryStats(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_category: Dict[str, int]
    oldest_memory: Optional[datetime] = None
    average_significance: float


class RecalledMemory(BaseModel):
    id: int
    content: str
    category: str
    type: str
    significance: float
    relevance: float
    created_at: datetime
    expires_at: Optional[datetime] = None


class RecallOut(BaseModel):
    memories: List[RecalledMemory]


class SweepOut(BaseModel):
    started_at: str
    finished_at: Optional[str] = None
    users_scanned: int
    memories_deleted: int
    deleted_by_user: Dict[str, int]
    failed_users: List[str]
