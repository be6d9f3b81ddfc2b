from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class QuizQuestionRead(BaseModel):
    id: str
    question: str
    options: List[str]
    correct_answer_index: Optional[int] = None


class QuizBase(BaseModel):
    title: str
    description: Optional[str] = None
    question_count: int
    is_public: bool = True
    is_pinned: bool = False


class QuizListItem(QuizBase):
    id: str
    owner_id: str
    created_at: Optional[datetime] = None
    source_filename: Optional[str] = None


class QuizListResponse(BaseModel):
    items: List[QuizListItem]


class QuizRead(QuizListItem):
    is_owner: bool = False
    pdf_storage_url: Optional[str] = None
    questions: List[QuizQuestionRead]


class QuizCreateResponse(BaseModel):
    quiz: QuizRead
    pdf_storage_url: Optional[str] = None
    message: str


class QuizRenameRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class QuizPinRequest(BaseModel):
    is_pinned: bool


class QuizStatusResponse(BaseModel):
    quiz_id: str
    message: str
    title: Optional[str] = None
    is_pinned: Optional[bool] = None
    deleted_results: Optional[int] = None
