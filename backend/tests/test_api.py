import asyncio
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from quizify.db import models
from quizify.services.quiz_service import QuizCreateError, create_quiz_from_pdf
from quizify.services.llm.mock import MockLLM


def auth(user_id):
    return {"Authorization": f"Bearer {user_id}"}


def _create_quiz(client, pdf_bytes, user_id="alice", count="4", filename="photosynthesis.pdf"):
    return client.post(
        "/quizzes",
        files={"pdf_file": (filename, pdf_bytes, "application/pdf")},
        data={"question_count": count},
        headers=auth(user_id),
    )


def _correct_answers(quiz):
    return {question["id"]: question["correct_answer_index"] for question in quiz["questions"]}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requires_authentication(client):
    response = client.get("/quizzes")
    assert response.status_code == 401
    assert response.json() == {"code": 401, "message": "Authentication token is required.", "details": {}}

    response = client.get("/history", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401
    assert response.json()["code"] == 401


def test_request_validation_errors_use_error_body(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]

    too_long = client.patch(f"/quizzes/{quiz['id']}/title", json={"title": "x" * 256}, headers=auth("alice"))
    assert too_long.status_code == 422
    body = too_long.json()
    assert body["code"] == 422
    assert body["message"] == "Request validation failed."
    assert body["details"]["errors"][0]["loc"] == ["body", "title"]

    bad_pin = client.patch(f"/quizzes/{quiz['id']}/pin", json={"pinned": "maybe"}, headers=auth("alice"))
    assert bad_pin.status_code == 422
    assert bad_pin.json()["code"] == 422

    missing_route = client.get("/nowhere", headers=auth("alice"))
    assert missing_route.status_code == 404
    assert missing_route.json()["code"] == 404


def test_create_quiz_from_pdf(client, sample_pdf):
    response = _create_quiz(client, sample_pdf)
    assert response.status_code == 200
    body = response.json()
    quiz = body["quiz"]
    assert quiz["title"] == "photosynthesis"
    assert quiz["question_count"] == 4
    assert quiz["owner_id"] == "alice"
    assert quiz["is_public"] is True
    assert quiz["is_pinned"] is False
    assert quiz["is_owner"] is True
    assert [question["id"] for question in quiz["questions"]] == ["q1", "q2", "q3", "q4"]
    assert body["pdf_storage_url"].endswith("-photosynthesis.pdf")
    assert quiz["source_filename"] == "photosynthesis.pdf"


def test_create_quiz_validation_errors(client, sample_pdf):
    wrong_type = client.post(
        "/quizzes",
        files={"pdf_file": ("notes.txt", b"plain text", "text/plain")},
        data={"question_count": "3"},
        headers=auth("alice"),
    )
    assert wrong_type.status_code == 415
    assert wrong_type.json()["details"]["category"] == "validation"

    missing_file = client.post("/quizzes", data={"question_count": "3"}, headers=auth("alice"))
    assert missing_file.status_code == 400
    assert missing_file.json()["message"] == "No PDF file uploaded."

    for count in ["0", "51", "abc", ""]:
        response = _create_quiz(client, sample_pdf, count=count)
        assert response.status_code == 422, count

    too_large = _create_quiz(client, b"%PDF-1.4" + b"0" * (10 * 1024 * 1024))
    assert too_large.status_code == 413


def test_create_quiz_reports_unreadable_pdf(client):
    response = _create_quiz(client, b"%PDF-1.4 not really")
    assert response.status_code == 400
    assert response.json()["details"]["category"] == "file"


def test_upload_failure_is_not_fatal(db, sample_pdf):
    class BrokenStore:
        def save(self, filename, data, content_type):
            raise OSError("disk full")

    result = create_quiz_from_pdf(
        db=db,
        owner_id="alice",
        filename="cells.pdf",
        content_type="application/pdf",
        data=sample_pdf,
        question_count="2",
        llm=MockLLM(),
        blob_store=BrokenStore(),
    )
    assert result["pdf_storage_url"] is None
    assert result["quiz"]["question_count"] == 2


def test_create_quiz_requires_owner(db, sample_pdf):
    try:
        create_quiz_from_pdf(
            db=db,
            owner_id="",
            filename="cells.pdf",
            content_type="application/pdf",
            data=sample_pdf,
            question_count="2",
            llm=MockLLM(),
        )
    except QuizCreateError as exc:
        assert exc.status_code == 401
    else:
        raise AssertionError("expected QuizCreateError")


def test_list_quizzes_pinned_first(client, sample_pdf):
    first = _create_quiz(client, sample_pdf, filename="first.pdf").json()["quiz"]
    second = _create_quiz(client, sample_pdf, filename="second.pdf").json()["quiz"]
    _create_quiz(client, sample_pdf, user_id="bob", filename="bob.pdf")

    items = client.get("/quizzes", headers=auth("alice")).json()["items"]
    assert [item["id"] for item in items] == [second["id"], first["id"]]

    pinned = client.patch(f"/quizzes/{first['id']}/pin", json={"is_pinned": True}, headers=auth("alice"))
    assert pinned.status_code == 200
    assert pinned.json()["is_pinned"] is True

    items = client.get("/quizzes", headers=auth("alice")).json()["items"]
    assert [item["id"] for item in items] == [first["id"], second["id"]]
    assert "questions" not in items[0]


def test_rename_and_pin_are_owner_only(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]

    renamed = client.patch(f"/quizzes/{quiz['id']}/title", json={"title": "  Light reactions  "}, headers=auth("alice"))
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "Light reactions"

    blank = client.patch(f"/quizzes/{quiz['id']}/title", json={"title": "   "}, headers=auth("alice"))
    assert blank.status_code == 422

    denied = client.patch(f"/quizzes/{quiz['id']}/title", json={"title": "Mine now"}, headers=auth("bob"))
    assert denied.status_code == 403
    assert client.patch(f"/quizzes/{quiz['id']}/pin", json={"is_pinned": True}, headers=auth("bob")).status_code == 403
    assert client.patch("/quizzes/missing/pin", json={"is_pinned": True}, headers=auth("alice")).status_code == 404

    detail = client.get(f"/quizzes/{quiz['id']}", headers=auth("alice")).json()
    assert detail["title"] == "Light reactions"


def test_other_users_see_public_quiz_without_answers(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    detail = client.get(f"/quizzes/{quiz['id']}", headers=auth("bob")).json()
    assert detail["is_owner"] is False
    assert detail["pdf_storage_url"] is None
    assert all(question["correct_answer_index"] is None for question in detail["questions"])


def test_private_quiz_is_hidden_from_others(client, db, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    db.query(models.Quiz).filter(models.Quiz.id == quiz["id"]).update({models.Quiz.is_public: False})
    db.commit()

    assert client.get(f"/quizzes/{quiz['id']}", headers=auth("bob")).status_code == 403
    submit = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=auth("bob"))
    assert submit.status_code == 403
    assert client.get(f"/quizzes/{quiz['id']}", headers=auth("alice")).status_code == 200


def test_submit_and_review_result(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    answers = _correct_answers(quiz)
    answers["q2"] = (answers["q2"] + 1) % 4
    del answers["q4"]

    response = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice"))
    assert response.status_code == 200
    outcome = response.json()
    assert outcome["correct"] == 2
    assert outcome["total"] == 4
    assert outcome["score"] == 50
    assert outcome["rating"] == "Needs Improvement"

    result = client.get(f"/results/{outcome['result_id']}", headers=auth("alice")).json()
    assert result["quiz_title"] == "photosynthesis"
    assert result["answers"] == answers
    assert [item["is_correct"] for item in result["questions"]] == [True, False, True, False]
    assert result["questions"][3]["selected_index"] is None

    assert client.get(f"/results/{outcome['result_id']}", headers=auth("bob")).status_code == 403
    assert client.get("/results/missing", headers=auth("alice")).status_code == 404


def test_resubmission_creates_new_result(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    answers = _correct_answers(quiz)
    first = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice")).json()
    second = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice")).json()
    assert first["result_id"] != second["result_id"]
    assert (first["correct"], first["total"], first["score"]) == (second["correct"], second["total"], second["score"])
    assert first["score"] == 100
    assert first["rating"] == "Excellent"

    items = client.get(f"/quizzes/{quiz['id']}/results", headers=auth("alice")).json()["items"]
    assert len(items) == 2


def test_submit_to_missing_quiz(client):
    response = client.post("/quizzes/missing/submit", json={"answers": {"q1": 0}}, headers=auth("alice"))
    assert response.status_code == 404
    assert response.json()["code"] == 404


def test_history(client, sample_pdf):
    empty = client.get("/history", headers=auth("alice")).json()
    assert empty["summary"]["total_quizzes_taken"] == 0
    assert empty["chart"] == []

    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    answers = _correct_answers(quiz)
    client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice"))
    client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=auth("alice"))
    client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("bob"))

    history = client.get("/history", headers=auth("alice")).json()
    assert history["summary"] == {
        "total_quizzes_taken": 2,
        "average_score": 50,
        "total_questions_answered": 8,
        "total_correct_answers": 4,
        "overall_accuracy": 50,
    }
    assert [point["score"] for point in history["chart"]] == [100, 0]
    assert [item["score"] for item in history["items"]] == [0, 100]
    assert history["chart"][0]["name"] == "photosynthesis"


def test_delete_quiz_cascades_to_owner_results(client, db, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    answers = _correct_answers(quiz)
    client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice"))
    bob_result = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("bob")).json()

    assert client.delete(f"/quizzes/{quiz['id']}", headers=auth("bob")).status_code == 403

    response = client.delete(f"/quizzes/{quiz['id']}", headers=auth("alice"))
    assert response.status_code == 200
    assert response.json()["deleted_results"] == 1

    assert client.get(f"/quizzes/{quiz['id']}", headers=auth("alice")).status_code == 404
    assert db.query(models.QuizQuestion).count() == 0
    assert client.get("/history", headers=auth("alice")).json()["summary"]["total_quizzes_taken"] == 0

    kept = client.get(f"/results/{bob_result['result_id']}", headers=auth("bob")).json()
    assert kept["quiz_id"] is None
    assert kept["score"] == 100
    assert len(kept["questions"]) == 4

    assert client.delete(f"/quizzes/{quiz['id']}", headers=auth("alice")).status_code == 404


def test_submit_treats_non_integer_answers_as_unanswered(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    answers = _correct_answers(quiz)
    assert answers["q2"] == 1
    answers["q2"] = True
    answers["q3"] = "x"
    answers["q4"] = 3.0

    response = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": answers}, headers=auth("alice"))
    assert response.status_code == 200
    outcome = response.json()
    assert (outcome["correct"], outcome["total"], outcome["score"]) == (1, 4, 25)

    result = client.get(f"/results/{outcome['result_id']}", headers=auth("alice")).json()
    assert result["answers"] == answers
    assert [item["selected_index"] for item in result["questions"]] == [0, None, None, None]


def test_submitted_at_is_utc(client, sample_pdf):
    quiz = _create_quiz(client, sample_pdf).json()["quiz"]
    outcome = client.post(f"/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=auth("alice")).json()
    submitted_at = datetime.fromisoformat(outcome["submitted_at"])
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert submitted_at.tzinfo is None
    assert abs(now - submitted_at) < timedelta(minutes=1)


class SlowMockLLM(MockLLM):
    def generate_json(self, prompt, context):
        time.sleep(1.0)
        return super().generate_json(prompt, context)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.mark.anyio
async def test_health_responds_while_quiz_is_generating(monkeypatch, sample_pdf):
    import quizify.main

    monkeypatch.setattr(quizify.main, "llm_client", SlowMockLLM())
    transport = httpx.ASGITransport(app=quizify.main.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        upload = asyncio.create_task(
            client.post(
                "/quizzes",
                files={"pdf_file": ("slow.pdf", sample_pdf, "application/pdf")},
                data={"question_count": "2"},
                headers=auth("alice"),
            )
        )
        await asyncio.sleep(0.2)
        started = time.perf_counter()
        health = await client.get("/health")
        latency = time.perf_counter() - started
        created = await upload

    assert health.status_code == 200
    assert created.status_code == 200
    assert latency < 0.5
