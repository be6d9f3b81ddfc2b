import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizify.core.config import load_settings
from quizify.db.models import Base
from quizify.db.session import engine, get_db
from quizify.schemas.history import HistoryResponse
from quizify.schemas.quiz import (
    QuizCreateResponse,
    QuizListResponse,
    QuizPinRequest,
    QuizRead,
    QuizRenameRequest,
    QuizStatusResponse,
)
from quizify.schemas.quiz_submit import (
    QuizResultListResponse,
    QuizResultResponse,
    QuizSubmitRequest,
    QuizSubmitResponse,
)
from quizify.services.auth_service import parse_bearer_token
from quizify.services.history_service import build_history_response
from quizify.services.provider_factory import build_blob_store, build_identity_provider, build_llm_client
from quizify.services.quiz_service import (
    QuizServiceError,
    create_quiz_from_pdf,
    delete_quiz,
    get_quiz,
    get_result,
    list_quiz_results,
    list_quizzes,
    rename_quiz,
    set_quiz_pin,
    submit_quiz,
)

settings = load_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(docs_url="/api-docs", redoc_url="/api-redoc")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
llm_client = build_llm_client(settings)
identity_provider = build_identity_provider(settings)
blob_store = build_blob_store(settings)


@app.on_event("startup")
def create_tables_on_startup():
    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)


def _error_body(
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "message": message, "details": details or {}},
        headers=headers,
    )


def _error_response(exc: QuizServiceError) -> JSONResponse:
    return _error_body(exc.status_code, exc.message, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_body(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return _error_body(422, "Request validation failed.", {"errors": errors})


def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    token = parse_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication token is required.")
    user_id = identity_provider.verify(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication token. Unable to verify user.")
    return user_id


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/quizzes", response_model=QuizCreateResponse)
def create_quiz(
    pdf_file: UploadFile | None = File(default=None),
    question_count: str | None = Form(default=None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    data = b""
    filename = None
    content_type = None
    if pdf_file is not None:
        filename = pdf_file.filename
        content_type = pdf_file.content_type
        data = pdf_file.file.read(settings.max_upload_bytes + 1)
    try:
        return create_quiz_from_pdf(
            db=db,
            owner_id=user_id,
            filename=filename,
            content_type=content_type,
            data=data,
            question_count=question_count,
            llm=llm_client,
            blob_store=blob_store,
            max_upload_bytes=settings.max_upload_bytes,
            min_questions=settings.min_question_count,
            max_questions=settings.max_question_count,
            timeout=settings.quiz_generation_timeout,
        )
    except QuizServiceError as exc:
        return _error_response(exc)


@app.get("/quizzes", response_model=QuizListResponse)
def my_quizzes(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return {"items": list_quizzes(db, user_id)}
    except QuizServiceError as exc:
        return _error_response(exc)


@app.get("/quizzes/{quiz_id}", response_model=QuizRead)
def quiz_detail(
    quiz_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return get_quiz(db, quiz_id, user_id)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.patch("/quizzes/{quiz_id}/title", response_model=QuizStatusResponse)
def quiz_rename(
    quiz_id: str,
    request: QuizRenameRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return rename_quiz(db, quiz_id, user_id, request.title)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.patch("/quizzes/{quiz_id}/pin", response_model=QuizStatusResponse)
def quiz_pin(
    quiz_id: str,
    request: QuizPinRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return set_quiz_pin(db, quiz_id, user_id, request.is_pinned)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.delete("/quizzes/{quiz_id}", response_model=QuizStatusResponse)
def quiz_delete(
    quiz_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return delete_quiz(db, quiz_id, user_id)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.post("/quizzes/{quiz_id}/submit", response_model=QuizSubmitResponse)
def quiz_submit(
    quiz_id: str,
    request: QuizSubmitRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return submit_quiz(db=db, quiz_id=quiz_id, answers=request.answers, owner_id=user_id)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.get("/quizzes/{quiz_id}/results", response_model=QuizResultListResponse)
def quiz_results(
    quiz_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return {"items": list_quiz_results(db, quiz_id, user_id)}
    except QuizServiceError as exc:
        return _error_response(exc)


@app.get("/results/{result_id}", response_model=QuizResultResponse)
def result_detail(
    result_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    try:
        return get_result(db, result_id, user_id)
    except QuizServiceError as exc:
        return _error_response(exc)


@app.get("/history", response_model=HistoryResponse)
def history(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return build_history_response(db, user_id)
