import json
import re
from typing import Any, Dict, List

from .base import LLMClient

DEFAULT_QUESTION_COUNT = 5
DISTRACTORS = [
    "The document does not discuss this point.",
    "The document states the opposite of this.",
    "None of the statements appear in the document.",
]


class MockLLM(LLMClient):
    """Offline client that builds a quiz straight from the supplied document text."""

    def __init__(self, max_option_length: int = 160):
        self.max_option_length = max_option_length

    def generate_json(self, prompt: str, context: str) -> str:
        match = re.search(r"QUESTION_COUNT=(\d+)", prompt or "")
        count = int(match.group(1)) if match else DEFAULT_QUESTION_COUNT
        return json.dumps(self._build_quiz(context, count), ensure_ascii=False)

    def _split_points(self, context: str) -> List[str]:
        text = (context or "").replace("\n", " ")
        points: List[str] = []
        for part in re.split(r"(?<=[.!?;])\s+", text):
            part = part.strip()
            if part and part not in points:
                points.append(part)
        return points

    def _build_quiz(self, context: str, count: int) -> Dict[str, Any]:
        points = self._split_points(context) or ["The document is empty."]
        questions: List[Dict[str, Any]] = []
        for index in range(max(count, 0)):
            statement = points[index % len(points)][: self.max_option_length]
            correct_index = index % (len(DISTRACTORS) + 1)
            options = list(DISTRACTORS)
            options.insert(correct_index, statement)
            questions.append(
                {
                    "id": f"q{index + 1}",
                    "question": "Which of the following statements appears in the document?",
                    "options": options,
                    "correct_answer_index": correct_index,
                }
            )
        return {
            "description": "Generated offline from the document text.",
            "questions": questions,
        }
