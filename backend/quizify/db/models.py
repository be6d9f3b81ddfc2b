from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from .session import Base


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(128), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(255), nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    storage_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    quizzes = relationship("Quiz", back_populates="document")


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(128), nullable=False, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    question_count = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, nullable=False, default=True)
    is_pinned = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    document = relationship("Document", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )
    results = relationship("QuizResult", back_populates="quiz")


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("quiz_id", "question_key", name="uq_quiz_questions_quiz_key"),)

    id = Column(Integer, primary_key=True)
    quiz_id = Column(String(64), ForeignKey("quizzes.id"), nullable=False, index=True)
    question_key = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    options_json = Column(JSON, nullable=False)
    correct_answer_index = Column(Integer, nullable=False)

    quiz = relationship("Quiz", back_populates="questions")


class QuizResult(Base):
    __tablename__ = "quiz_results"

    id = Column(String(64), primary_key=True)
    quiz_id = Column(String(64), ForeignKey("quizzes.id"), nullable=True, index=True)
    owner_id = Column(String(128), nullable=False, index=True)
    quiz_title = Column(String(255), nullable=True)
    answers_json = Column(JSON, nullable=False)
    correct = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    score = Column(Integer, nullable=False)
    questions_snapshot_json = Column(JSON, nullable=False)
    submitted_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    quiz = relationship("Quiz", back_populates="results")
