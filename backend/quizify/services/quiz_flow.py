"""PDF to quiz generation flow.

Takes ``{pdf_data_uri, question_count, file_name}`` and returns a validated
:class:`GeneratedQuiz`. Failures raise :class:`QuizFlowError` with one of the
categories ``file``, ``ai`` or ``payload``.
"""
import concurrent.futures
import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from quizify.schemas.quiz_generate import OPTION_COUNT, GeneratedQuiz, QuizFlowInput
from quizify.services.document_parser import DocumentParseError, decode_data_uri, extract_pdf_text
from quizify.services.llm.base import LLMClient

DEFAULT_FLOW_TIMEOUT = 120.0
logger = logging.getLogger(__name__)


class QuizFlowError(Exception):
    def __init__(self, category: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.details = details or {}


def build_quiz_prompt(question_count: int, file_name: str) -> str:
    return (
        "You write multiple-choice quizzes from study material.\n"
        "Return only JSON with this structure:\n"
        "{"
        "\"title\":\"short quiz title\","
        "\"description\":\"one sentence about the quiz\","
        "\"questions\":[{\"id\":\"q1\",\"question\":\"...\","
        "\"options\":[\"...\",\"...\",\"...\",\"...\"],\"correct_answer_index\":0}]"
        "}\n"
        "Rules:\n"
        f"1) Write exactly {question_count} questions.\n"
        f"2) Every question has exactly {OPTION_COUNT} options and one correct option.\n"
        "3) correct_answer_index is the zero-based index of the correct option.\n"
        "4) Use only facts stated in the document.\n"
        f"QUESTION_COUNT={question_count}\n"
        f"FILE_NAME={file_name}\n"
    )


def _call_llm(llm: LLMClient, prompt: str, context: str, timeout: float) -> str:
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(llm.generate_json, prompt, context)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as exc:
        future.cancel()
        logger.warning("Quiz generation timed out after %.1fs.", timeout)
        raise QuizFlowError(
            "ai",
            "AI processing timed out, possibly due to a large or complex document.",
            {"timeout": timeout},
        ) from exc
    except Exception as exc:
        logger.warning("Quiz generation failed in the AI service: %s", exc)
        raise QuizFlowError("ai", f"An error occurred with the AI service: {exc}") from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def parse_quiz_json(raw: str) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    cleaned = raw.strip()
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", cleaned, re.DOTALL)
    if fenced:
        cleaned = fenced.group(1)
    if not (cleaned.startswith("{") and cleaned.endswith("}")):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        cleaned = cleaned[start : end + 1]
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _normalize_questions(raw_questions: Any, question_count: int) -> List[Dict[str, Any]]:
    if not isinstance(raw_questions, list):
        return []
    questions: List[Dict[str, Any]] = []
    seen_ids: set[str] = set()
    for position, item in enumerate(raw_questions[:question_count], start=1):
        if not isinstance(item, dict):
            continue
        question_id = str(item.get("id") or "").strip()
        if not question_id or question_id in seen_ids:
            question_id = f"q{position}"
        while question_id in seen_ids:
            question_id = f"{question_id}_{position}"
        seen_ids.add(question_id)

        options = item.get("options")
        if not isinstance(options, list):
            options = []
        correct = item.get("correct_answer_index", item.get("correctAnswerIndex"))
        questions.append(
            {
                "id": question_id,
                "question": str(item.get("question") or item.get("text") or "").strip(),
                "options": [str(option).strip() for option in options],
                "correct_answer_index": correct,
            }
        )
    return questions


def build_generated_quiz(data: Dict[str, Any], question_count: int, file_name: str) -> GeneratedQuiz:
    questions = _normalize_questions(data.get("questions"), question_count)
    title = str(data.get("title") or "").strip() or Path(file_name).stem.strip() or "Untitled quiz"
    description = str(data.get("description") or "").strip() or None
    payload = {
        "id": uuid.uuid4().hex,
        "title": title[:255],
        "description": description,
        "question_count": len(questions),
        "questions": questions,
    }
    try:
        return GeneratedQuiz.model_validate(payload)
    except ValidationError as exc:
        logger.warning("AI quiz payload failed validation: %s", exc.errors())
        raise QuizFlowError(
            "payload",
            "AI response validation error.",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def create_quiz(
    flow_input: QuizFlowInput,
    llm: LLMClient,
    timeout: float = DEFAULT_FLOW_TIMEOUT,
) -> GeneratedQuiz:
    try:
        _, data = decode_data_uri(flow_input.pdf_data_uri)
        text = extract_pdf_text(data)
    except DocumentParseError as exc:
        raise QuizFlowError("file", str(exc)) from exc

    started = time.perf_counter()
    prompt = build_quiz_prompt(flow_input.question_count, flow_input.file_name)
    raw = _call_llm(llm, prompt, text, timeout)
    logger.info(
        "Quiz flow for %s answered in %dms (%d chars of text).",
        flow_input.file_name,
        int((time.perf_counter() - started) * 1000),
        len(text),
    )

    parsed = parse_quiz_json(raw)
    if not parsed:
        raise QuizFlowError("payload", "AI failed to generate valid quiz content (unparseable response).")
    return build_generated_quiz(parsed, flow_input.question_count, flow_input.file_name)
