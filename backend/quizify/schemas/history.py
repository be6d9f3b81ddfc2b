from typing import List

from pydantic import BaseModel, Field

from quizify.schemas.quiz_submit import QuizResultItem


class HistorySummary(BaseModel):
    total_quizzes_taken: int = 0
    average_score: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0
    overall_accuracy: int = 0


class ChartPoint(BaseModel):
    name: str
    score: int


class HistoryResponse(BaseModel):
    summary: HistorySummary
    chart: List[ChartPoint] = Field(default_factory=list)
    items: List[QuizResultItem] = Field(default_factory=list)
