from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from quizify.db import models
from quizify.services.scoring import round_mean, round_percent

CHART_SIZE = 10


def _format_date(value: Optional[datetime]) -> str:
    if not value:
        return "N/A"
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def chart_label(title: Optional[str], submitted_at: Optional[datetime]) -> str:
    cleaned = (title or "").strip()
    if cleaned:
        return cleaned
    return f"Quiz {_format_date(submitted_at)}"


def aggregate_history(attempts: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Summarize attempts given newest first.

    The chart holds the newest ``CHART_SIZE`` attempts in chronological order.
    """
    scores = [int(item.get("score") or 0) for item in attempts]
    total_questions = sum(int(item.get("total") or 0) for item in attempts)
    total_correct = sum(int(item.get("correct") or 0) for item in attempts)

    summary = {
        "total_quizzes_taken": len(attempts),
        "average_score": round_mean(scores),
        "total_questions_answered": total_questions,
        "total_correct_answers": total_correct,
        "overall_accuracy": round_percent(total_correct, total_questions),
    }

    recent = list(attempts[:CHART_SIZE])
    recent.reverse()
    chart = [
        {
            "name": chart_label(item.get("quiz_title"), item.get("submitted_at")),
            "score": int(item.get("score") or 0),
        }
        for item in recent
    ]
    return {"summary": summary, "chart": chart}


def list_user_results(db: Session, owner_id: str) -> List[models.QuizResult]:
    return (
        db.query(models.QuizResult)
        .filter(models.QuizResult.owner_id == owner_id)
        .order_by(models.QuizResult.submitted_at.desc())
        .all()
    )


def result_to_item(result: models.QuizResult) -> Dict[str, Any]:
    return {
        "result_id": result.id,
        "quiz_id": result.quiz_id,
        "quiz_title": result.quiz_title,
        "correct": result.correct,
        "total": result.total,
        "score": result.score,
        "submitted_at": result.submitted_at,
    }


def build_history_response(db: Session, owner_id: str) -> Dict[str, Any]:
    items = [result_to_item(result) for result in list_user_results(db, owner_id)]
    aggregated = aggregate_history(items)
    return {
        "summary": aggregated["summary"],
        "chart": aggregated["chart"],
        "items": items,
    }
