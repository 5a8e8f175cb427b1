import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from db.models.assignments import Assignment
from db.models.grades import Grade
from db.models.submissions import Submission
from db.models.users import User

from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .gradebook import Gradebook

logger = logging.getLogger(__name__)


class AssignmentManager:
    def __init__(self, gradebook: Gradebook = None):
        self.gradebook = gradebook or Gradebook()

    def get_assignment(self, db: Session, assignment_id: int) -> Assignment:
        assignment = db.query(Assignment).filter(Assignment.id == assignment_id).first()
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    def get_visible_assignment(self, db: Session, assignment_id: int, user: User) -> Assignment:
        assignment = self.get_assignment(db, assignment_id)
        if user.role == "student" and assignment.status == "draft":
            raise NotFoundError("Assignment not found")
        return assignment

    def get_owned_assignment(self, db: Session, assignment_id: int, teacher: User) -> Assignment:
        assignment = self.get_assignment(db, assignment_id)
        if assignment.created_by != teacher.id:
            raise PermissionDeniedError("You can only manage your own assignments")
        return assignment

    def list_assignments(self, db: Session, user: User) -> List[Assignment]:
        query = db.query(Assignment)
        if user.role == "teacher":
            query = query.filter(Assignment.created_by == user.id)
        else:
            query = query.filter(Assignment.status == "published")
        return query.order_by(Assignment.created_at.desc(), Assignment.id.desc()).all()

    def create_assignment(self, db: Session, teacher: User, data) -> Assignment:
        if not data.title.strip():
            raise ValidationError("Assignment title is required")

        assignment = Assignment(
            title=data.title.strip(),
            description=data.description or "",
            created_by=teacher.id,
            due_date=data.due_date,
            max_points=data.max_points,
            status=data.status,
        )
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        logger.info("Assignment %s created by teacher %s", assignment.id, teacher.id)
        return assignment

    def update_assignment(self, db: Session, assignment_id: int, teacher: User, data) -> Assignment:
        assignment = self.get_owned_assignment(db, assignment_id, teacher)

        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            if key == "title":
                value = value.strip()
            setattr(assignment, key, value)

        db.commit()
        db.refresh(assignment)
        logger.info("Assignment %s updated", assignment.id)
        return assignment

    def delete_assignment(self, db: Session, assignment_id: int, teacher: User):
        assignment = self.get_owned_assignment(db, assignment_id, teacher)
        db.query(Grade).filter(Grade.assignment_id == assignment.id).delete(synchronize_session=False)
        db.delete(assignment)
        db.commit()
        logger.info("Assignment %s deleted by teacher %s", assignment_id, teacher.id)

    # ============ submissions ============

    def submit(self, db: Session, assignment_id: int, student: User, data) -> Submission:
        if not data.content or not data.content.strip():
            raise ValidationError("Submission content cannot be empty")

        assignment = self.get_visible_assignment(db, assignment_id, student)
        if assignment.status != "published":
            raise ConflictError("This assignment is not accepting submissions.")

        submission = (
            db.query(Submission)
            .filter(Submission.assignment_id == assignment.id, Submission.student_id == student.id)
            .first()
        )
        if submission and submission.status == "graded":
            raise ConflictError("This submission has already been graded.")

        now = datetime.utcnow()
        status = "late" if now > assignment.due_date else "pending"

        if submission is None:
            submission = Submission(assignment_id=assignment.id, student_id=student.id)
            db.add(submission)

        submission.content = data.content
        submission.attachments = list(data.attachments or [])
        submission.status = status
        submission.submitted_at = now

        db.commit()
        db.refresh(submission)
        logger.info("Student %s submitted assignment %s (%s)", student.id, assignment.id, status)
        return submission

    def get_submission(self, db: Session, assignment_id: int, student: User) -> Submission:
        self.get_visible_assignment(db, assignment_id, student)
        submission = (
            db.query(Submission)
            .filter(Submission.assignment_id == assignment_id, Submission.student_id == student.id)
            .first()
        )
        if not submission:
            raise NotFoundError("No submission yet")
        return submission

    def list_submissions(self, db: Session, assignment_id: int, teacher: User) -> List[Dict[str, Any]]:
        self.get_owned_assignment(db, assignment_id, teacher)
        submissions = (
            db.query(Submission)
            .filter(Submission.assignment_id == assignment_id)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .all()
        )
        rows = []
        for s in submissions:
            row = self._submission_dict(s)
            row["student_name"] = s.student.name if s.student else None
            row["student_email"] = s.student.email if s.student else None
            rows.append(row)
        return rows

    def student_submissions(self, db: Session, student: User) -> List[Dict[str, Any]]:
        submissions = (
            db.query(Submission)
            .filter(Submission.student_id == student.id)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .all()
        )
        rows = []
        for s in submissions:
            row = self._submission_dict(s)
            row["assignment_title"] = s.assignment.title
            row["assignment_max_points"] = s.assignment.max_points
            row["assignment_due_date"] = s.assignment.due_date
            rows.append(row)
        return rows

    def grade_submission(self, db: Session, submission_id: int, teacher: User, data) -> Submission:
        submission = db.query(Submission).filter(Submission.id == submission_id).first()
        if not submission:
            raise NotFoundError("Submission not found")

        assignment = submission.assignment
        if assignment.created_by != teacher.id:
            raise PermissionDeniedError("You can only grade submissions to your own assignments")
        if data.points > assignment.max_points:
            raise ValidationError(f"Points cannot exceed {assignment.max_points}")

        submission.points = data.points
        submission.max_points = assignment.max_points
        submission.feedback = data.feedback
        submission.status = "graded"

        self.gradebook.upsert_grade(
            db,
            student_id=submission.student_id,
            graded_by=teacher.id,
            feedback=data.feedback,
            assignment_id=assignment.id,
            commit=False,
        )
        db.commit()
        db.refresh(submission)
        logger.info(
            "Submission %s graded %s/%s by teacher %s",
            submission.id, submission.points, submission.max_points, teacher.id,
        )
        return submission

    def pending_count(self, db: Session, teacher: User) -> int:
        return (
            db.query(Submission)
            .join(Assignment, Submission.assignment_id == Assignment.id)
            .filter(Assignment.created_by == teacher.id, Submission.status != "graded")
            .count()
        )

    @staticmethod
    def _submission_dict(submission: Submission) -> Dict[str, Any]:
        return {
            "id": submission.id,
            "assignment_id": submission.assignment_id,
            "student_id": submission.student_id,
            "content": submission.content,
            "attachments": submission.attachments or [],
            "status": submission.status,
            "points": submission.points,
            "max_points": submission.max_points,
            "feedback": submission.feedback,
            "submitted_at": submission.submitted_at,
            "updated_at": submission.updated_at,
        }
