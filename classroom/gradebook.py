import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from db.models.assignments import Assignment
from db.models.grades import Grade
from db.models.quiz_attempts import QuizAttempt
from db.models.submissions import Submission
from db.models.users import User

from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

LETTER_THRESHOLDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]


def letter_grade(percentage: float) -> str:
    for threshold, letter in LETTER_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return "F"


def percentage(points: Optional[float], max_points: Optional[float]) -> Optional[float]:
    if points is None or not max_points:
        return None
    return points / max_points * 100


def overall_percentage(grades: List[Dict[str, Any]]) -> float:
    """Total points over total possible points, as a percentage (0 when nothing is graded)."""
    total_points = sum(g.get("points") or 0 for g in grades)
    total_max_points = sum(g.get("max_points") or 0 for g in grades)
    if total_max_points <= 0:
        return 0.0
    return total_points / total_max_points * 100


class Gradebook:
    """
    Grade rows only annotate a submission or a quiz attempt; the numbers are
    joined back from whichever one the row references every time it is read.
    """

    def upsert_grade(
        self,
        db: Session,
        student_id: int,
        graded_by: int,
        feedback: Optional[str] = None,
        assignment_id: Optional[int] = None,
        quiz_attempt_id: Optional[int] = None,
        commit: bool = True,
    ) -> Grade:
        query = db.query(Grade).filter(Grade.student_id == student_id)
        if quiz_attempt_id is not None:
            query = query.filter(Grade.quiz_attempt_id == quiz_attempt_id)
        else:
            query = query.filter(Grade.assignment_id == assignment_id)
        grade = query.first()

        if grade is None:
            grade = Grade(
                student_id=student_id,
                assignment_id=assignment_id,
                quiz_attempt_id=quiz_attempt_id,
                feedback=feedback,
                graded_by=graded_by,
            )
            db.add(grade)
        else:
            if feedback is not None:
                grade.feedback = feedback
            grade.graded_by = graded_by
            grade.graded_at = datetime.utcnow()

        if commit:
            db.commit()
            db.refresh(grade)
        return grade

    def save_grade(self, db: Session, teacher: User, data) -> Grade:
        student = db.query(User).filter(User.id == data.student_id, User.role == "student").first()
        if not student:
            raise NotFoundError("Student not found")

        if data.quiz_attempt_id is not None:
            attempt = db.query(QuizAttempt).filter(QuizAttempt.id == data.quiz_attempt_id).first()
            if not attempt:
                raise NotFoundError("Quiz attempt not found")
            if attempt.student_id != student.id:
                raise ValidationError("Quiz attempt does not belong to this student")
        else:
            assignment = db.query(Assignment).filter(Assignment.id == data.assignment_id).first()
            if not assignment:
                raise NotFoundError("Assignment not found")

        grade = self.upsert_grade(
            db,
            student_id=student.id,
            graded_by=teacher.id,
            feedback=data.feedback,
            assignment_id=data.assignment_id,
            quiz_attempt_id=data.quiz_attempt_id,
        )
        logger.info("Grade %s saved for student %s by %s", grade.id, student.id, teacher.id)
        return grade

    def delete_grade(self, db: Session, grade_id: int):
        grade = db.query(Grade).filter(Grade.id == grade_id).first()
        if not grade:
            raise NotFoundError("Grade not found")
        db.delete(grade)
        db.commit()
        logger.info("Grade %s deleted", grade_id)

    def resolve(self, db: Session, grade: Grade) -> Dict[str, Any]:
        points = None
        max_points = None
        title = None

        if grade.quiz_attempt_id:
            kind = "quiz"
            attempt = grade.quiz_attempt
            if attempt:
                points = attempt.score
                max_points = attempt.max_score
                title = attempt.quiz.title if attempt.quiz else None
        else:
            kind = "assignment"
            assignment = grade.assignment
            if assignment:
                title = assignment.title
                submission = (
                    db.query(Submission)
                    .filter(
                        Submission.assignment_id == grade.assignment_id,
                        Submission.student_id == grade.student_id,
                    )
                    .first()
                )
                # an ungraded submission still counts its max_points, so it weighs as 0 in averages
                if submission:
                    points = submission.points
                    max_points = assignment.max_points

        pct = percentage(points, max_points)
        return {
            "id": grade.id,
            "student_id": grade.student_id,
            "assignment_id": grade.assignment_id,
            "quiz_attempt_id": grade.quiz_attempt_id,
            "feedback": grade.feedback,
            "graded_by": grade.graded_by,
            "graded_at": grade.graded_at,
            "kind": kind,
            "title": title,
            "points": points,
            "max_points": max_points,
            "percentage": round(pct, 1) if pct is not None else None,
            "letter_grade": letter_grade(pct) if pct is not None else None,
        }

    def student_grades(self, db: Session, student_id: int) -> List[Dict[str, Any]]:
        grades = (
            db.query(Grade)
            .filter(Grade.student_id == student_id)
            .order_by(Grade.graded_at.desc(), Grade.id.desc())
            .all()
        )
        return [self.resolve(db, g) for g in grades]

    def all_grades(self, db: Session) -> List[Dict[str, Any]]:
        grades = db.query(Grade).order_by(Grade.graded_at.desc(), Grade.id.desc()).all()
        return [self.resolve(db, g) for g in grades]

    def assignment_grades(self, db: Session, assignment_id: int) -> List[Dict[str, Any]]:
        grades = db.query(Grade).filter(Grade.assignment_id == assignment_id).all()
        return [self.resolve(db, g) for g in grades]

    def quiz_grades(self, db: Session, quiz_id: int) -> List[Dict[str, Any]]:
        grades = (
            db.query(Grade)
            .join(QuizAttempt, Grade.quiz_attempt_id == QuizAttempt.id)
            .filter(QuizAttempt.quiz_id == quiz_id)
            .all()
        )
        return [self.resolve(db, g) for g in grades]

    def student_summaries(self, db: Session, search: Optional[str] = None) -> List[Dict[str, Any]]:
        grades = self.all_grades(db)

        by_student: Dict[int, List[Dict[str, Any]]] = {}
        for g in grades:
            by_student.setdefault(g["student_id"], []).append(g)

        students = db.query(User).filter(User.id.in_(list(by_student.keys()))).all() if by_student else []
        profiles = {s.id: s for s in students}

        summaries = []
        for student_id, student_grades in by_student.items():
            profile = profiles.get(student_id)
            name = profile.name if profile else "Unknown"
            if search and search.lower() not in (name or "").lower():
                continue

            average = overall_percentage(student_grades)
            summaries.append(
                {
                    "student_id": student_id,
                    "name": name,
                    "email": profile.email if profile else "",
                    "grades": student_grades,
                    "average": round(average, 1),
                    "letter_grade": letter_grade(average),
                }
            )

        summaries.sort(key=lambda s: s["name"].lower())
        return summaries
