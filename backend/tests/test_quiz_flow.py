import json
import time

import pytest

from quizify.schemas.quiz_generate import QuizFlowInput
from quizify.services.document_parser import build_data_uri
from quizify.services.llm.mock import MockLLM
from quizify.services.quiz_flow import (
    QuizFlowError,
    build_generated_quiz,
    build_quiz_prompt,
    create_quiz,
    parse_quiz_json,
)


FOUR_OPTIONS = ["a", "b", "c", "d"]


class StaticLLM:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def generate_json(self, prompt, context):
        self.calls.append((prompt, context))
        return self.response


class FailingLLM:
    def generate_json(self, prompt, context):
        raise RuntimeError("upstream 500")


class SlowLLM:
    def generate_json(self, prompt, context):
        time.sleep(0.5)
        return "{}"


def _flow_input(data, count=3, file_name="biology-notes.pdf"):
    return QuizFlowInput(pdf_data_uri=build_data_uri(data), question_count=count, file_name=file_name)


def test_prompt_requests_count_and_json():
    prompt = build_quiz_prompt(7, "notes.pdf")
    assert "Return only JSON" in prompt
    assert "exactly 4 options" in prompt
    assert "exactly 7 questions" in prompt
    assert "QUESTION_COUNT=7" in prompt


def test_parse_quiz_json_tolerates_fences_and_prose():
    payload = {"title": "T", "questions": []}
    assert parse_quiz_json(json.dumps(payload)) == payload
    assert parse_quiz_json("```json\n" + json.dumps(payload) + "\n```") == payload
    assert parse_quiz_json("Here is your quiz: " + json.dumps(payload) + " Enjoy!") == payload
    assert parse_quiz_json("no json here") is None
    assert parse_quiz_json("[1, 2]") is None


def test_build_generated_quiz_fills_ids_and_title():
    data = {
        "questions": [
            {"question": "First?", "options": FOUR_OPTIONS, "correctAnswerIndex": 1},
            {"id": "x", "question": "Second?", "options": FOUR_OPTIONS, "correct_answer_index": 0},
            {"id": "x", "question": "Third?", "options": FOUR_OPTIONS, "correct_answer_index": 0},
        ]
    }
    quiz = build_generated_quiz(data, question_count=5, file_name="cell biology.pdf")
    assert quiz.title == "cell biology"
    assert quiz.question_count == 3
    assert [item.id for item in quiz.questions] == ["q1", "x", "q3"]
    assert quiz.questions[0].correct_answer_index == 1
    assert len(quiz.id) == 32


def test_build_generated_quiz_truncates_extra_questions():
    data = {
        "title": "Long",
        "questions": [
            {"id": f"q{i}", "question": f"Q{i}?", "options": FOUR_OPTIONS, "correct_answer_index": 0}
            for i in range(1, 6)
        ],
    }
    quiz = build_generated_quiz(data, question_count=2, file_name="x.pdf")
    assert quiz.question_count == 2


def test_build_generated_quiz_accepts_fewer_questions_than_requested():
    data = {"questions": [{"question": "Only one?", "options": FOUR_OPTIONS, "correct_answer_index": 3}]}
    quiz = build_generated_quiz(data, question_count=10, file_name="x.pdf")
    assert quiz.question_count == 1
    assert quiz.questions[0].id == "q1"


def test_mock_llm_always_returns_quiz_json():
    raw = MockLLM().generate_json("Write a quiz.", "Cells divide. Cells grow.")
    data = json.loads(raw)
    assert len(data["questions"]) == 5
    assert all(len(question["options"]) == 4 for question in data["questions"])
    assert data["questions"][1]["options"][1] == "Cells grow."


@pytest.mark.parametrize(
    "questions",
    [
        [],
        [{"question": "Q?", "options": FOUR_OPTIONS, "correct_answer_index": 4}],
        [{"question": "Q?", "options": ["a", "b"], "correct_answer_index": 0}],
        [{"question": "Q?", "options": FOUR_OPTIONS + ["e"], "correct_answer_index": 0}],
        [{"question": "Q?", "options": FOUR_OPTIONS}],
        [{"question": "", "options": FOUR_OPTIONS, "correct_answer_index": 0}],
    ],
)
def test_build_generated_quiz_rejects_invalid_payload(questions):
    with pytest.raises(QuizFlowError) as exc_info:
        build_generated_quiz({"title": "Bad", "questions": questions}, question_count=3, file_name="x.pdf")
    assert exc_info.value.category == "payload"


def test_create_quiz_with_mock_llm(sample_pdf):
    quiz = create_quiz(_flow_input(sample_pdf, count=5), MockLLM())
    assert quiz.question_count == 5
    assert quiz.title == "biology-notes"
    for position, question in enumerate(quiz.questions):
        assert len(question.options) == 4
        assert question.correct_answer_index == position % 4
    assert "Photosynthesis" in quiz.questions[0].options[0]


def test_create_quiz_passes_document_text_to_llm(sample_pdf):
    response = json.dumps(
        {
            "title": "Plants",
            "description": "Light reactions",
            "questions": [{"id": "q1", "question": "What absorbs light?", "options": ["Chlorophyll", "Salt", "Sand", "Iron"], "correct_answer_index": 0}],
        }
    )
    llm = StaticLLM(response)
    quiz = create_quiz(_flow_input(sample_pdf, count=1), llm)
    assert quiz.title == "Plants"
    assert quiz.description == "Light reactions"
    _, context = llm.calls[0]
    assert "Chlorophyll" in context


def test_create_quiz_rejects_unreadable_pdf():
    with pytest.raises(QuizFlowError) as exc_info:
        create_quiz(_flow_input(b"%PDF-1.4 broken"), MockLLM())
    assert exc_info.value.category == "file"


def test_create_quiz_reports_ai_failures(sample_pdf):
    with pytest.raises(QuizFlowError) as exc_info:
        create_quiz(_flow_input(sample_pdf), FailingLLM())
    assert exc_info.value.category == "ai"
    assert "upstream 500" in exc_info.value.message


def test_create_quiz_times_out(sample_pdf):
    with pytest.raises(QuizFlowError) as exc_info:
        create_quiz(_flow_input(sample_pdf), SlowLLM(), timeout=0.05)
    assert exc_info.value.category == "ai"
    assert "timed out" in exc_info.value.message


def test_create_quiz_rejects_unparseable_response(sample_pdf):
    with pytest.raises(QuizFlowError) as exc_info:
        create_quiz(_flow_input(sample_pdf), StaticLLM("Sorry, I cannot help with that."))
    assert exc_info.value.category == "payload"
