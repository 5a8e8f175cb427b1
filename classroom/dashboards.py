import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from db.models.assignments import Assignment
from db.models.quiz_attempts import QuizAttempt
from db.models.quizzes import Quiz
from db.models.submissions import Submission
from db.models.users import User

from .assignments import AssignmentManager
from .attendance_book import AttendanceBook
from .config import RECENT_ITEMS_LIMIT, UPCOMING_DEADLINES_LIMIT
from .gradebook import Gradebook, letter_grade, overall_percentage
from .meet import MeetService
from .online_classes import OnlineClassManager

SECONDS_PER_DAY = 60 * 60 * 24


def days_until_due(due_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days left until due_date, rounded up; negative once overdue."""
    now = now or datetime.utcnow()
    return math.ceil((due_date - now).total_seconds() / SECONDS_PER_DAY)


def urgency(days: int) -> str:
    if days <= 1:
        return "urgent"
    if days <= 3:
        return "soon"
    return "normal"


class DashboardBuilder:
    def __init__(
        self,
        gradebook: Gradebook = None,
        assignments: AssignmentManager = None,
        attendance: AttendanceBook = None,
        online_classes: OnlineClassManager = None,
        meet: MeetService = None,
    ):
        self.gradebook = gradebook or Gradebook()
        self.assignments = assignments or AssignmentManager(self.gradebook)
        self.attendance = attendance or AttendanceBook()
        self.meet = meet or MeetService()
        self.online_classes = online_classes or OnlineClassManager(self.meet)

    def student(self, db: Session, student: User, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()

        quizzes = db.query(Quiz).filter(Quiz.status == "published").all()
        assignments = db.query(Assignment).filter(Assignment.status == "published").all()

        attempted = {
            a.quiz_id for a in db.query(QuizAttempt).filter(QuizAttempt.student_id == student.id).all()
        }
        submitted = {
            s.assignment_id for s in db.query(Submission).filter(Submission.student_id == student.id).all()
        }

        pending = [("quiz", q) for q in quizzes if q.id not in attempted]
        pending += [("assignment", a) for a in assignments if a.id not in submitted]

        deadlines = []
        for kind, item in sorted(pending, key=lambda p: p[1].due_date):
            if item.due_date < now:
                continue
            days = days_until_due(item.due_date, now)
            deadlines.append(
                {
                    "kind": kind,
                    "id": item.id,
                    "title": item.title,
                    "due_date": item.due_date,
                    "days_until_due": days,
                    "urgency": urgency(days),
                }
            )

        grades = self.gradebook.student_grades(db, student.id)
        overall = overall_percentage(grades)

        attendance = self.attendance.student_attendance(db, student.id)
        meet = self.meet.current_link(db)

        return {
            "completed_quizzes": len(attempted),
            "submitted_assignments": len(submitted),
            "overall_percentage": round(overall, 1),
            "overall_letter_grade": letter_grade(overall),
            "pending_tasks": len(pending),
            "upcoming_deadlines": deadlines[:UPCOMING_DEADLINES_LIMIT],
            "attendance": attendance["summary"],
            "meet_link": meet.link if meet else None,
            "ongoing_class": self.online_classes.ongoing(db),
        }

    def teacher(self, db: Session, teacher: User) -> Dict[str, Any]:
        quizzes = (
            db.query(Quiz)
            .filter(Quiz.created_by == teacher.id, Quiz.status == "published")
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .all()
        )
        assignments = (
            db.query(Assignment)
            .filter(Assignment.created_by == teacher.id, Assignment.status == "published")
            .order_by(Assignment.created_at.desc(), Assignment.id.desc())
            .all()
        )
        meet = self.meet.current_link(db)

        return {
            "total_students": len(self.attendance.students(db)),
            "published_quizzes": len(quizzes),
            "published_assignments": len(assignments),
            "recent_quizzes": [
                {"id": q.id, "title": q.title, "due_date": q.due_date, "question_count": len(q.questions)}
                for q in quizzes[:RECENT_ITEMS_LIMIT]
            ],
            "recent_assignments": [
                {"id": a.id, "title": a.title, "due_date": a.due_date, "max_points": a.max_points}
                for a in assignments[:RECENT_ITEMS_LIMIT]
            ],
            "pending_submissions": self.assignments.pending_count(db, teacher),
            "meet_link": meet.link if meet else None,
        }
