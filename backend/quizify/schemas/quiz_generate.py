from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

OPTION_COUNT = 4


class QuizFlowInput(BaseModel):
    pdf_data_uri: str = Field(..., min_length=1)
    question_count: int = Field(..., ge=1)
    file_name: str = Field(..., min_length=1)


class GeneratedQuestion(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correct_answer_index: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_correct_index(self):
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correct_answer_index is outside the options")
        return self


class GeneratedQuiz(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    question_count: int = Field(..., ge=1)
    questions: List[GeneratedQuestion] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_question_ids(self):
        ids = [item.id for item in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError("question ids must be unique")
        if self.question_count != len(self.questions):
            raise ValueError("question_count does not match questions")
        return self
