from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class QuizSubmitRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class QuizSubmitResponse(BaseModel):
    result_id: str
    quiz_id: str
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    score: int = Field(..., ge=0, le=100)
    rating: str
    submitted_at: Optional[datetime] = None


class QuestionReview(BaseModel):
    question_id: str
    question: Optional[str] = None
    options: List[str]
    selected_index: Optional[int] = None
    correct_answer_index: Optional[int] = None
    is_correct: bool


class QuizResultResponse(BaseModel):
    result_id: str
    quiz_id: Optional[str] = None
    quiz_title: Optional[str] = None
    answers: Dict[str, Any]
    correct: int
    total: int
    score: int
    rating: str
    submitted_at: Optional[datetime] = None
    questions: List[QuestionReview]


class QuizResultItem(BaseModel):
    result_id: str
    quiz_id: Optional[str] = None
    quiz_title: Optional[str] = None
    correct: int
    total: int
    score: int
    submitted_at: Optional[datetime] = None


class QuizResultListResponse(BaseModel):
    items: List[QuizResultItem]
