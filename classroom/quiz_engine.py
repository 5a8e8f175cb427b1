from typing import Any, Dict, List, Optional

from .errors import ValidationError

TRUE_ANSWERS = ("1", "true")
FALSE_ANSWERS = ("0", "false")


class QuizEngine:
    """
    Scores quiz answers against the stored answer key.

    multiple-choice answers are option indexes compared as trimmed strings,
    true-false keys are "1" (true) / "0" (false) and short-answer questions
    are left for the teacher to review.
    """

    def validate_question(self, question_type: str, options: Optional[List[str]], correct_answer: str, points: int):
        if points is None or points <= 0:
            raise ValidationError("Question points must be positive")

        if question_type == "multiple-choice":
            if not options or len(options) < 2:
                raise ValidationError("Multiple-choice questions need at least two options")
            if any(not str(opt).strip() for opt in options):
                raise ValidationError("Multiple-choice options cannot be blank")
            valid_keys = [str(i) for i in range(len(options))]
            if str(correct_answer).strip() not in valid_keys:
                raise ValidationError("correct_answer must be the index of one of the options")

        elif question_type == "true-false":
            if str(correct_answer).strip() not in ("0", "1"):
                raise ValidationError("True/false correct_answer must be '1' (true) or '0' (false)")

        elif question_type != "short-answer":
            raise ValidationError(f"Unsupported question type: {question_type}")

    def is_correct(self, question, answer: Any) -> Optional[bool]:
        if question.question_type == "multiple-choice":
            if answer is None:
                return False
            return str(answer).strip() == str(question.correct_answer).strip()

        if question.question_type == "true-false":
            if answer is None:
                return False
            key_is_true = question.correct_answer == "1"
            given = str(answer).strip().lower()
            if given in TRUE_ANSWERS:
                return key_is_true
            if given in FALSE_ANSWERS:
                return not key_is_true
            return False

        # short-answer
        return None

    def grade(self, questions, answers: Dict[str, Any]) -> Dict[str, Any]:
        total_score = 0
        max_score = 0
        results = []
        needs_review = False

        for q in questions:
            answer = answers.get(str(q.id))
            is_correct = self.is_correct(q, answer)

            if is_correct is None and answer not in (None, ""):
                needs_review = True

            awarded = q.points if is_correct else 0
            total_score += awarded
            max_score += q.points

            results.append(
                {
                    "question_id": q.id,
                    "question_type": q.question_type,
                    "is_correct": is_correct,
                    "points_awarded": awarded,
                    "points": q.points,
                }
            )

        return {
            "score": total_score,
            "max_score": max_score,
            "results": results,
            "needs_review": needs_review,
        }

    def clamp_time_spent(self, time_spent: int, time_limit: Optional[int]) -> int:
        time_spent = max(0, int(time_spent or 0))
        if time_limit:
            return min(time_spent, time_limit * 60)
        return time_spent
