"""Attempt scoring.

Questions are plain mappings in the snapshot shape stored with every result:
``{"id", "question", "options", "correct_answer_index"}``. The answer set maps
a question id to the selected zero-based option index.
"""
import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

SCORE_RATINGS = (
    (90, "Excellent"),
    (80, "Good"),
    (60, "Fair"),
)
DEFAULT_RATING = "Needs Improvement"


def round_percent(numerator: int, denominator: int) -> int:
    """Half-up rounding of ``100 * numerator / denominator``; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def round_mean(values: Sequence[int]) -> int:
    if not values:
        return 0
    count = len(values)
    return (2 * sum(values) + count) // (2 * count)


def _selected_index(answers: Mapping[str, Any], question_id: str) -> Optional[int]:
    value = answers.get(question_id)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def score_attempt(
    questions: Sequence[Mapping[str, Any]],
    answers: Mapping[str, Any],
) -> Dict[str, int]:
    total = len(questions)
    correct = 0
    for question in questions:
        selected = _selected_index(answers, str(question.get("id")))
        if selected is not None and selected == question.get("correct_answer_index"):
            correct += 1
    return {"correct": correct, "total": total, "score": round_percent(correct, total)}


def review_attempt(
    questions: Sequence[Mapping[str, Any]],
    answers: Mapping[str, Any],
) -> List[Dict[str, Any]]:
    review: List[Dict[str, Any]] = []
    for question in questions:
        question_id = str(question.get("id"))
        selected = _selected_index(answers, question_id)
        expected = question.get("correct_answer_index")
        review.append(
            {
                "question_id": question_id,
                "question": question.get("question"),
                "options": list(question.get("options") or []),
                "selected_index": selected,
                "correct_answer_index": expected,
                "is_correct": selected is not None and selected == expected,
            }
        )
    return review


def snapshot_questions(questions: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [copy.deepcopy(dict(question)) for question in questions]


def rate_score(score: int) -> str:
    for threshold, label in SCORE_RATINGS:
        if score >= threshold:
            return label
    return DEFAULT_RATING
