from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class QuizAnswerIn(BaseModel):
    question_id: Optional[int] = None
    traits: Dict[str, int]


class QuizSubmission(BaseModel):
    answers: List[QuizAnswerIn] = Field(min_length=1, max_length=100)


class QuizResult(BaseModel):
    archetype: str
    title: str
    companion_name: str
    attachment_style: str
    dimensions: Dict[str, float | str]
    milestones_achieved: List[str] = []
