import os
import sys
import uuid

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from quizify.db import models
from quizify.db.session import SessionLocal
from quizify.services.scoring import score_attempt, snapshot_questions


def main() -> None:
    owner_id = f"verify-{uuid.uuid4().hex[:8]}"
    db = SessionLocal()
    try:
        quiz = models.Quiz(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title="Schema check",
            question_count=1,
        )
        quiz.questions.append(
            models.QuizQuestion(
                question_key="q1",
                position=0,
                text="Sample question?",
                options_json=["A", "B", "C", "D"],
                correct_answer_index=0,
            )
        )
        db.add(quiz)
        db.flush()

        questions = [
            {
                "id": "q1",
                "question": "Sample question?",
                "options": ["A", "B", "C", "D"],
                "correct_answer_index": 0,
            }
        ]
        outcome = score_attempt(questions, {"q1": 0})
        result = models.QuizResult(
            id=uuid.uuid4().hex,
            quiz_id=quiz.id,
            owner_id=owner_id,
            quiz_title=quiz.title,
            answers_json={"q1": 0},
            questions_snapshot_json=snapshot_questions(questions),
            **outcome,
        )
        db.add(result)
        db.commit()

        loaded_quiz = db.query(models.Quiz).filter(models.Quiz.id == quiz.id).first()
        loaded_result = db.query(models.QuizResult).filter(models.QuizResult.id == result.id).first()

        print(
            "quiz_id={quiz_id} questions={questions} result_id={result_id} score={score} owner_id={owner_id}".format(
                quiz_id=loaded_quiz.id if loaded_quiz else None,
                questions=len(loaded_quiz.questions) if loaded_quiz else 0,
                result_id=loaded_result.id if loaded_result else None,
                score=loaded_result.score if loaded_result else None,
                owner_id=owner_id,
            )
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
