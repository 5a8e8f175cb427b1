from datetime import date, datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, model_validator

from .config import (
    DEFAULT_ATTEMPTS_ALLOWED,
    DEFAULT_MAX_POINTS,
    DEFAULT_QUESTION_POINTS,
    DEFAULT_TIME_LIMIT,
)


def _naive_utc(value: datetime) -> datetime:
    # everything is stored as naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]

QuestionType = Literal["multiple-choice", "true-false", "short-answer"]
PublishStatus = Literal["draft", "published", "closed"]
AttendanceStatus = Literal["present", "absent", "late"]
OnlineClassStatus = Literal["scheduled", "ongoing", "completed", "cancelled"]


class ORMModel(BaseModel):
    model_config = {
        "from_attributes": True
    }


# ============ Profiles ============

class ProfileOut(ORMModel):
    id: int
    name: str
    email: str
    role: str
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============ Quizzes ============

class QuestionIn(BaseModel):
    question_type: QuestionType = "multiple-choice"
    question_text: str = Field(..., min_length=1)
    options: Optional[List[str]] = None
    correct_answer: str = "0"
    points: int = Field(DEFAULT_QUESTION_POINTS, gt=0)


class QuestionUpdate(BaseModel):
    question_type: Optional[QuestionType] = None
    question_text: Optional[str] = Field(None, min_length=1)
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: Optional[int] = Field(None, gt=0)
    order_index: Optional[int] = Field(None, ge=0)


class QuestionPublic(ORMModel):
    id: int
    quiz_id: int
    question_type: str
    question_text: str
    options: Optional[List[str]] = None
    points: int
    order_index: int


class QuestionOut(QuestionPublic):
    correct_answer: str
    created_at: datetime


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = ""
    due_date: UtcDateTime
    time_limit: Optional[int] = Field(DEFAULT_TIME_LIMIT, ge=1)
    attempts_allowed: int = Field(DEFAULT_ATTEMPTS_ALLOWED, ge=1)
    status: PublishStatus = "published"
    questions: List[QuestionIn] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[UtcDateTime] = None
    time_limit: Optional[int] = Field(None, ge=1)
    attempts_allowed: Optional[int] = Field(None, ge=1)
    status: Optional[PublishStatus] = None
    questions: Optional[List[QuestionIn]] = None


class QuizStatusUpdate(BaseModel):
    status: PublishStatus


class QuizPublicOut(ORMModel):
    id: int
    title: str
    description: Optional[str] = None
    created_by: int
    due_date: datetime
    time_limit: Optional[int] = None
    attempts_allowed: int
    status: str
    created_at: datetime
    updated_at: datetime
    questions: List[QuestionPublic] = []


class QuizOut(QuizPublicOut):
    questions: List[QuestionOut] = []


# ============ Quiz attempts ============

class AttemptSubmit(BaseModel):
    answers: Dict[str, Union[str, int]] = {}
    time_spent: int = Field(0, ge=0)  # seconds


class AttemptOut(ORMModel):
    id: int
    quiz_id: int
    student_id: int
    answers: Dict[str, Union[str, int]] = {}
    score: float
    max_score: float
    time_spent: int
    completed_at: datetime


class AttemptWithStudent(AttemptOut):
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class QuestionResult(BaseModel):
    question_id: int
    question_type: str
    is_correct: Optional[bool] = None  # None -> needs manual review
    points_awarded: float
    points: float


class AttemptResult(AttemptOut):
    results: List[QuestionResult] = []
    needs_review: bool = False


class AttemptReview(BaseModel):
    score: float = Field(..., ge=0)
    feedback: Optional[str] = None


# ============ Assignments ============

class AssignmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    due_date: UtcDateTime
    max_points: int = Field(DEFAULT_MAX_POINTS, gt=0)
    status: PublishStatus = "published"


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[UtcDateTime] = None
    max_points: Optional[int] = Field(None, gt=0)
    status: Optional[PublishStatus] = None


class AssignmentOut(ORMModel):
    id: int
    title: str
    description: Optional[str] = ""
    created_by: int
    due_date: datetime
    max_points: int
    status: str
    created_at: datetime
    updated_at: datetime


class SubmissionCreate(BaseModel):
    content: str
    attachments: List[str] = []


class SubmissionOut(ORMModel):
    id: int
    assignment_id: int
    student_id: int
    content: str
    attachments: List[str] = []
    status: str
    points: Optional[float] = None
    max_points: Optional[int] = None
    feedback: Optional[str] = None
    submitted_at: datetime
    updated_at: datetime


class SubmissionWithStudent(SubmissionOut):
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class SubmissionWithAssignment(SubmissionOut):
    assignment_title: Optional[str] = None
    assignment_max_points: Optional[int] = None
    assignment_due_date: Optional[datetime] = None


class SubmissionGrade(BaseModel):
    points: float = Field(..., ge=0)
    feedback: Optional[str] = None


# ============ Grades ============

class GradeUpsert(BaseModel):
    student_id: int
    assignment_id: Optional[int] = None
    quiz_attempt_id: Optional[int] = None
    feedback: Optional[str] = None

    @model_validator(mode="after")
    def check_target(self):
        if (self.assignment_id is None) == (self.quiz_attempt_id is None):
            raise ValueError("Exactly one of assignment_id or quiz_attempt_id is required")
        return self


class GradeOut(ORMModel):
    id: int
    student_id: int
    assignment_id: Optional[int] = None
    quiz_attempt_id: Optional[int] = None
    feedback: Optional[str] = None
    graded_by: int
    graded_at: datetime


class DetailedGrade(GradeOut):
    kind: str  # quiz / assignment
    title: Optional[str] = None
    points: Optional[float] = None
    max_points: Optional[float] = None
    percentage: Optional[float] = None
    letter_grade: Optional[str] = None


class StudentGradeSummary(BaseModel):
    student_id: int
    name: str
    email: str
    grades: List[DetailedGrade] = []
    average: float
    letter_grade: str


# ============ Attendance ============

class AttendanceCreate(BaseModel):
    student_id: int
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None


class BulkAttendance(BaseModel):
    date: date
    statuses: Dict[int, AttendanceStatus] = {}


class AttendanceOut(ORMModel):
    id: int
    student_id: int
    date: date
    status: str
    notes: Optional[str] = None
    recorded_by: int
    created_at: datetime


class AttendanceWithStudent(AttendanceOut):
    student_name: Optional[str] = None
    student_email: Optional[str] = None


class AttendanceStats(BaseModel):
    date: date
    total: int
    present: int
    absent: int
    late: int


class CalendarDay(BaseModel):
    date: date
    count: int
    has_attendance: bool
    is_today: bool


class AttendanceSummary(BaseModel):
    total: int
    present: int
    absent: int
    late: int
    percentage: int


class StudentAttendance(BaseModel):
    student_id: int
    records: List[AttendanceOut] = []
    summary: AttendanceSummary


# ============ Online classes / meet links ============

class OnlineClassCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_time: UtcDateTime
    end_time: UtcDateTime
    description: Optional[str] = None
    meeting_link: Optional[str] = None
    status: OnlineClassStatus = "scheduled"

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class OnlineClassStatusUpdate(BaseModel):
    status: OnlineClassStatus


class OnlineClassOut(ORMModel):
    id: int
    title: str
    teacher_id: int
    start_time: datetime
    end_time: datetime
    status: str
    meeting_link: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MeetLinkOut(ORMModel):
    id: int
    link: str
    created_by: int
    created_at: datetime


# ============ Dashboards ============

class Deadline(BaseModel):
    kind: str  # quiz / assignment
    id: int
    title: str
    due_date: datetime
    days_until_due: int
    urgency: str


class StudentDashboard(BaseModel):
    completed_quizzes: int
    submitted_assignments: int
    overall_percentage: float
    overall_letter_grade: str
    pending_tasks: int
    upcoming_deadlines: List[Deadline] = []
    attendance: AttendanceSummary
    meet_link: Optional[str] = None
    ongoing_class: Optional[OnlineClassOut] = None


class QuizSummary(BaseModel):
    id: int
    title: str
    due_date: datetime
    question_count: int


class AssignmentSummary(BaseModel):
    id: int
    title: str
    due_date: datetime
    max_points: int


class TeacherDashboard(BaseModel):
    total_students: int
    published_quizzes: int
    published_assignments: int
    recent_quizzes: List[QuizSummary] = []
    recent_assignments: List[AssignmentSummary] = []
    pending_submissions: int
    meet_link: Optional[str] = None
