import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizify.db import models
from quizify.schemas.quiz_generate import GeneratedQuiz, QuizFlowInput
from quizify.services.document_parser import PDF_CONTENT_TYPE, build_data_uri
from quizify.services.history_service import result_to_item
from quizify.services.llm.base import LLMClient
from quizify.services.quiz_flow import DEFAULT_FLOW_TIMEOUT, QuizFlowError, create_quiz
from quizify.services.scoring import rate_score, review_attempt, score_attempt, snapshot_questions
from quizify.services.storage_service import BlobStore

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_MIN_QUESTIONS = 1
DEFAULT_MAX_QUESTIONS = 50
MAX_TITLE_LENGTH = 255
FLOW_ERROR_STATUS = {"file": 400, "ai": 502, "payload": 502}
logger = logging.getLogger(__name__)


class QuizServiceError(Exception):
    def __init__(self, status_code: int, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or {}


class QuizCreateError(QuizServiceError):
    def __init__(
        self,
        status_code: int,
        message: str,
        category: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        merged["category"] = category
        super().__init__(status_code, message, merged)
        self.category = category


class QuizSubmitError(QuizServiceError):
    pass


class QuizAccessError(QuizServiceError):
    pass


def _utcnow() -> datetime:
    # Columns are naive and hold UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _require_owner_id(owner_id: Optional[str], error_cls=QuizAccessError) -> str:
    value = (owner_id or "").strip()
    if not value:
        raise error_cls(401, "User not authenticated")
    return value


def quiz_questions(quiz: models.Quiz) -> List[Dict[str, Any]]:
    return [
        {
            "id": question.question_key,
            "question": question.text,
            "options": list(question.options_json or []),
            "correct_answer_index": question.correct_answer_index,
        }
        for question in sorted(quiz.questions, key=lambda item: item.position)
    ]


def serialize_quiz(quiz: models.Quiz, viewer_id: Optional[str] = None, include_questions: bool = False) -> Dict[str, Any]:
    document = quiz.document
    data: Dict[str, Any] = {
        "id": quiz.id,
        "owner_id": quiz.owner_id,
        "title": quiz.title,
        "description": quiz.description,
        "question_count": quiz.question_count,
        "is_public": bool(quiz.is_public),
        "is_pinned": bool(quiz.is_pinned),
        "created_at": quiz.created_at,
        "source_filename": document.filename if document else None,
    }
    if include_questions:
        is_owner = viewer_id is not None and viewer_id == quiz.owner_id
        questions = quiz_questions(quiz)
        if not is_owner:
            for question in questions:
                question["correct_answer_index"] = None
        data["is_owner"] = is_owner
        data["pdf_storage_url"] = document.storage_url if document and is_owner else None
        data["questions"] = questions
    return data


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    size: int,
    question_count: Optional[str],
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    min_questions: int = DEFAULT_MIN_QUESTIONS,
    max_questions: int = DEFAULT_MAX_QUESTIONS,
) -> int:
    if not filename or size <= 0:
        raise QuizCreateError(400, "No PDF file uploaded.", "validation")
    if (content_type or "").lower() != PDF_CONTENT_TYPE:
        raise QuizCreateError(
            415,
            "Invalid file type. Only PDF is allowed.",
            "validation",
            {"content_type": content_type},
        )
    if size > max_upload_bytes:
        raise QuizCreateError(
            413,
            f"File is too large. Maximum size is {max_upload_bytes // (1024 * 1024)}MB.",
            "validation",
            {"size": size, "max_size": max_upload_bytes},
        )
    raw_count = (question_count or "").strip()
    if not raw_count:
        raise QuizCreateError(422, "Number of questions not specified.", "validation")
    try:
        count = int(raw_count)
    except ValueError:
        count = None
    if count is None or count < min_questions or count > max_questions:
        raise QuizCreateError(
            422,
            f"Invalid number of questions. Must be between {min_questions} and {max_questions}.",
            "validation",
            {"question_count": raw_count},
        )
    return count


def _upload_source(blob_store: Optional[BlobStore], filename: str, data: bytes, content_type: str) -> Optional[str]:
    if blob_store is None:
        return None
    try:
        return blob_store.save(filename, data, content_type)
    except Exception as exc:
        logger.warning("PDF upload to storage failed, continuing without a stored copy: %s", exc)
        return None


def _save_generated_quiz(
    db: Session,
    owner_id: str,
    generated: GeneratedQuiz,
    filename: str,
    content_type: str,
    size: int,
    storage_url: Optional[str],
) -> models.Quiz:
    document = models.Document(
        owner_id=owner_id,
        filename=filename,
        content_type=content_type,
        size_bytes=size,
        storage_url=storage_url,
    )
    db.add(document)
    db.flush()

    quiz = models.Quiz(
        id=generated.id,
        owner_id=owner_id,
        document_id=document.id,
        title=generated.title,
        description=generated.description,
        question_count=generated.question_count,
        is_public=True,
        is_pinned=False,
        created_at=_utcnow(),
    )
    for position, question in enumerate(generated.questions):
        quiz.questions.append(
            models.QuizQuestion(
                question_key=question.id,
                position=position,
                text=question.question,
                options_json=list(question.options),
                correct_answer_index=question.correct_answer_index,
            )
        )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


def create_quiz_from_pdf(
    db: Session,
    owner_id: Optional[str],
    filename: Optional[str],
    content_type: Optional[str],
    data: bytes,
    question_count: Optional[str],
    llm: LLMClient,
    blob_store: Optional[BlobStore] = None,
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    min_questions: int = DEFAULT_MIN_QUESTIONS,
    max_questions: int = DEFAULT_MAX_QUESTIONS,
    timeout: float = DEFAULT_FLOW_TIMEOUT,
) -> Dict[str, Any]:
    normalized_owner = (owner_id or "").strip()
    if not normalized_owner:
        raise QuizCreateError(401, "User not authenticated for action.", "validation")
    count = validate_upload(
        filename,
        content_type,
        len(data or b""),
        question_count,
        max_upload_bytes=max_upload_bytes,
        min_questions=min_questions,
        max_questions=max_questions,
    )
    content_type = PDF_CONTENT_TYPE

    flow_input = QuizFlowInput(
        pdf_data_uri=build_data_uri(data, content_type),
        question_count=count,
        file_name=filename,
    )
    storage_url = _upload_source(blob_store, filename, data, content_type)

    try:
        generated = create_quiz(flow_input, llm, timeout=timeout)
    except QuizFlowError as exc:
        raise QuizCreateError(
            FLOW_ERROR_STATUS.get(exc.category, 500),
            exc.message,
            exc.category,
            exc.details,
        ) from exc
    except Exception as exc:
        logger.exception("Unexpected error while generating quiz from %s", filename)
        raise QuizCreateError(
            500,
            f"An unexpected server error occurred. Please try again. ({type(exc).__name__})",
            "general",
        ) from exc

    try:
        quiz = _save_generated_quiz(db, normalized_owner, generated, filename, content_type, len(data), storage_url)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Saving generated quiz %s failed", generated.id)
        raise QuizCreateError(500, f"Failed to save quiz: {exc.__class__.__name__}", "storage") from exc

    logger.info("Quiz %s created with %d questions for %s", quiz.id, quiz.question_count, normalized_owner)
    return {
        "quiz": serialize_quiz(quiz, normalized_owner, include_questions=True),
        "pdf_storage_url": storage_url,
        "message": "Quiz created and saved successfully.",
    }


def list_quizzes(db: Session, owner_id: Optional[str]) -> List[Dict[str, Any]]:
    normalized_owner = _require_owner_id(owner_id)
    quizzes = (
        db.query(models.Quiz)
        .filter(models.Quiz.owner_id == normalized_owner)
        .order_by(models.Quiz.is_pinned.desc(), models.Quiz.created_at.desc(), models.Quiz.id.asc())
        .all()
    )
    return [serialize_quiz(quiz) for quiz in quizzes]


def _get_quiz_or_error(db: Session, quiz_id: str, error_cls=QuizAccessError) -> models.Quiz:
    quiz = db.query(models.Quiz).filter(models.Quiz.id == quiz_id).first()
    if not quiz:
        raise error_cls(404, "Quiz not found", {"quiz_id": quiz_id})
    return quiz


def _get_owned_quiz(db: Session, quiz_id: str, owner_id: Optional[str], action: str) -> models.Quiz:
    normalized_owner = _require_owner_id(owner_id)
    quiz = _get_quiz_or_error(db, quiz_id)
    if quiz.owner_id != normalized_owner:
        logger.warning("User %s tried to %s quiz %s owned by someone else", normalized_owner, action, quiz_id)
        raise QuizAccessError(
            403,
            f"You do not have permission to {action} this quiz.",
            {"quiz_id": quiz_id},
        )
    return quiz


def get_quiz(db: Session, quiz_id: str, viewer_id: Optional[str]) -> Dict[str, Any]:
    normalized_viewer = _require_owner_id(viewer_id)
    quiz = _get_quiz_or_error(db, quiz_id)
    if quiz.owner_id != normalized_viewer and not quiz.is_public:
        raise QuizAccessError(403, "This quiz is private.", {"quiz_id": quiz_id})
    return serialize_quiz(quiz, normalized_viewer, include_questions=True)


def rename_quiz(db: Session, quiz_id: str, owner_id: Optional[str], title: str) -> Dict[str, Any]:
    quiz = _get_owned_quiz(db, quiz_id, owner_id, "rename")
    cleaned = (title or "").strip()
    if not cleaned:
        raise QuizAccessError(422, "Title must not be empty.", {"quiz_id": quiz_id})
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise QuizAccessError(
            422,
            f"Title must be at most {MAX_TITLE_LENGTH} characters.",
            {"quiz_id": quiz_id},
        )
    if cleaned == quiz.title:
        return {"quiz_id": quiz.id, "title": quiz.title, "message": "Title unchanged."}
    quiz.title = cleaned
    db.commit()
    return {"quiz_id": quiz.id, "title": quiz.title, "message": "Quiz renamed successfully."}


def set_quiz_pin(db: Session, quiz_id: str, owner_id: Optional[str], is_pinned: bool) -> Dict[str, Any]:
    quiz = _get_owned_quiz(db, quiz_id, owner_id, "pin")
    quiz.is_pinned = bool(is_pinned)
    db.commit()
    return {
        "quiz_id": quiz.id,
        "is_pinned": quiz.is_pinned,
        "message": "Quiz pinned." if quiz.is_pinned else "Quiz unpinned.",
    }


def delete_quiz(db: Session, quiz_id: str, owner_id: Optional[str]) -> Dict[str, Any]:
    quiz = _get_owned_quiz(db, quiz_id, owner_id, "delete")
    owner = quiz.owner_id
    try:
        deleted_results = (
            db.query(models.QuizResult)
            .filter(models.QuizResult.quiz_id == quiz.id, models.QuizResult.owner_id == owner)
            .delete(synchronize_session=False)
        )
        # Other users keep their snapshots.
        db.query(models.QuizResult).filter(models.QuizResult.quiz_id == quiz.id).update(
            {models.QuizResult.quiz_id: None},
            synchronize_session=False,
        )
        db.delete(quiz)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Deleting quiz %s failed", quiz_id)
        raise
    logger.info("Quiz %s deleted by %s with %d results", quiz_id, owner, deleted_results)
    return {
        "quiz_id": quiz_id,
        "deleted_results": deleted_results,
        "message": "Quiz and associated results deleted successfully.",
    }


def submit_quiz(
    db: Session,
    quiz_id: str,
    answers: Optional[Mapping[str, Any]],
    owner_id: Optional[str],
) -> Dict[str, Any]:
    normalized_owner = _require_owner_id(owner_id, QuizSubmitError)
    quiz = _get_quiz_or_error(db, quiz_id, QuizSubmitError)
    if quiz.owner_id != normalized_owner and not quiz.is_public:
        raise QuizSubmitError(403, "This quiz is private.", {"quiz_id": quiz_id})

    answer_set = {str(key): value for key, value in (answers or {}).items()}
    questions = quiz_questions(quiz)
    outcome = score_attempt(questions, answer_set)

    result = models.QuizResult(
        id=uuid.uuid4().hex,
        quiz_id=quiz.id,
        owner_id=normalized_owner,
        quiz_title=quiz.title,
        answers_json=answer_set,
        correct=outcome["correct"],
        total=outcome["total"],
        score=outcome["score"],
        questions_snapshot_json=snapshot_questions(questions),
        submitted_at=_utcnow(),
    )
    db.add(result)
    db.commit()
    logger.info(
        "Result %s stored for quiz %s: %d/%d",
        result.id,
        quiz.id,
        outcome["correct"],
        outcome["total"],
    )
    return {
        "result_id": result.id,
        "quiz_id": quiz.id,
        "correct": outcome["correct"],
        "total": outcome["total"],
        "score": outcome["score"],
        "rating": rate_score(outcome["score"]),
        "submitted_at": result.submitted_at,
    }


def get_result(db: Session, result_id: str, owner_id: Optional[str]) -> Dict[str, Any]:
    normalized_owner = _require_owner_id(owner_id)
    result = db.query(models.QuizResult).filter(models.QuizResult.id == result_id).first()
    if not result:
        raise QuizAccessError(404, "Result not found", {"result_id": result_id})
    if result.owner_id != normalized_owner:
        raise QuizAccessError(403, "You do not have permission to view this result.", {"result_id": result_id})

    snapshot = result.questions_snapshot_json or []
    answers = result.answers_json or {}
    return {
        "result_id": result.id,
        "quiz_id": result.quiz_id,
        "quiz_title": result.quiz_title,
        "answers": answers,
        "correct": result.correct,
        "total": result.total,
        "score": result.score,
        "rating": rate_score(result.score),
        "submitted_at": result.submitted_at,
        "questions": review_attempt(snapshot, answers),
    }


def list_quiz_results(db: Session, quiz_id: str, owner_id: Optional[str]) -> List[Dict[str, Any]]:
    normalized_owner = _require_owner_id(owner_id)
    results = (
        db.query(models.QuizResult)
        .filter(models.QuizResult.quiz_id == quiz_id, models.QuizResult.owner_id == normalized_owner)
        .order_by(models.QuizResult.submitted_at.desc())
        .all()
    )
    return [result_to_item(result) for result in results]
