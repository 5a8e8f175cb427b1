import logging
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from auth.security import (
    hash_password,
    verify_password,
    decode_refresh_token,
    issue_token_pair,
)
from auth.schemas import RegisterSchema, LoginSchema, RefreshRequest, TokenResponse, ProfileUpdate
from auth.dependencies import get_current_user, get_current_student, get_current_teacher

from classroom.logging_setup import configure_logging
from classroom.errors import ClassroomError, NotFoundError
from classroom.quizzes import QuizManager
from classroom.assignments import AssignmentManager
from classroom.gradebook import Gradebook
from classroom.attendance_book import AttendanceBook
from classroom.online_classes import OnlineClassManager
from classroom.meet import MeetService
from classroom.dashboards import DashboardBuilder
from classroom import schemas

from db.database import get_db
from db.init_db import init_db
from db.models.users import User
from db.models.refresh_tokens import RefreshToken

configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Virtual Classroom API",
    version="1.0.0",
    description=(
        "Quizzes, assignments, grades and attendance for teachers and students, "
        "with JWT accounts and role-based access."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_tables():
    init_db()
    logger.info("Database tables ready")


@app.exception_handler(ClassroomError)
def classroom_error_handler(request: Request, exc: ClassroomError):
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# ============ Core components ============

gradebook = Gradebook()
meet_service = MeetService()
quiz_manager = QuizManager(gradebook=gradebook)
assignment_manager = AssignmentManager(gradebook=gradebook)
attendance_book = AttendanceBook()
online_class_manager = OnlineClassManager(meet=meet_service)
dashboards = DashboardBuilder(
    gradebook=gradebook,
    assignments=assignment_manager,
    attendance=attendance_book,
    online_classes=online_class_manager,
    meet=meet_service,
)


# ============ Account endpoints ============

def _login_user(user: User, db: Session) -> dict:
    access_token, refresh_token = issue_token_pair(user)

    db.add(RefreshToken(user_id=user.id, token=refresh_token))
    db.commit()

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


def _authenticate(email: str, password: str, db: Session) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return user


@app.post("/register", response_model=schemas.ProfileOut, status_code=status.HTTP_201_CREATED)
def register(data: RegisterSchema, db: Session = Depends(get_db)):
    email = data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password),
        role=data.role,
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info("Registered %s %s", new_user.role, new_user.id)
    return new_user


@app.post("/login", response_model=TokenResponse)
def login(data: LoginSchema, db: Session = Depends(get_db)):
    user = _authenticate(data.email, data.password, db)
    return _login_user(user, db)


@app.post("/token", response_model=TokenResponse)
def login_form(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    # OAuth2 password flow for the interactive docs; username carries the email
    user = _authenticate(form_data.username, form_data.password, db)
    return _login_user(user, db)


@app.post("/refresh", response_model=TokenResponse)
def refresh_token_endpoint(data: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_refresh_token(data.refresh_token)
    if not payload or payload.get("sub") is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user_id = int(payload["sub"])
    token_in_db = (
        db.query(RefreshToken)
        .filter(RefreshToken.token == data.refresh_token, RefreshToken.user_id == user_id)
        .first()
    )
    if not token_in_db:
        raise HTTPException(status_code=401, detail="Refresh token not found or revoked")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    # rotate: the old refresh token stops working
    access_token, new_refresh_token = issue_token_pair(user)
    token_in_db.token = new_refresh_token
    db.commit()

    return {
        "access_token": access_token,
        "refresh_token": new_refresh_token,
        "token_type": "bearer",
    }


@app.post("/logout")
def logout(
    data: RefreshRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    token_in_db = db.query(RefreshToken).filter(
        RefreshToken.token == data.refresh_token,
        RefreshToken.user_id == current_user.id
    ).first()

    if not token_in_db:
        return {"message": "Token already invalid or not found"}

    db.delete(token_in_db)
    db.commit()

    return {"message": "Logged out successfully"}


@app.post("/logout-all")
def logout_all(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db.query(RefreshToken).filter(
        RefreshToken.user_id == current_user.id
    ).delete()

    db.commit()

    return {"message": "Logged out from all devices"}


@app.get("/me", response_model=schemas.ProfileOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@app.patch("/me", response_model=schemas.ProfileOut)
def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = data.model_dump(exclude_unset=True)
    if "name" in updates and updates["name"] is not None:
        current_user.name = updates["name"].strip()
    if "avatar_url" in updates:
        current_user.avatar_url = updates["avatar_url"]
    db.commit()
    db.refresh(current_user)
    return current_user


@app.get("/students", response_model=List[schemas.ProfileOut])
def list_students(
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.students(db)


# ============ Quizzes ============

def _quiz_view(quiz, user: User):
    if user.role == "teacher":
        return schemas.QuizOut.model_validate(quiz)
    return schemas.QuizPublicOut.model_validate(quiz)


@app.get("/quizzes")
def list_quizzes(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [_quiz_view(q, current_user) for q in quiz_manager.list_quizzes(db, current_user)]


@app.get("/quizzes/{quiz_id}")
def get_quiz(quiz_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if current_user.role == "teacher":
        quiz = quiz_manager.get_owned_quiz(db, quiz_id, current_user)
    else:
        quiz = quiz_manager.get_visible_quiz(db, quiz_id, current_user)
    return _quiz_view(quiz, current_user)


@app.post("/quizzes", response_model=schemas.QuizOut, status_code=status.HTTP_201_CREATED)
def create_quiz(
    data: schemas.QuizCreate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.create_quiz(db, current_teacher, data)


@app.put("/quizzes/{quiz_id}", response_model=schemas.QuizOut)
def update_quiz(
    quiz_id: int,
    data: schemas.QuizUpdate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.update_quiz(db, quiz_id, current_teacher, data)


@app.patch("/quizzes/{quiz_id}/status", response_model=schemas.QuizOut)
def set_quiz_status(
    quiz_id: int,
    data: schemas.QuizStatusUpdate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.set_status(db, quiz_id, current_teacher, data.status)


@app.delete("/quizzes/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quiz(
    quiz_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    quiz_manager.delete_quiz(db, quiz_id, current_teacher)


@app.post("/quizzes/{quiz_id}/questions", response_model=List[schemas.QuestionOut], status_code=status.HTTP_201_CREATED)
def add_questions(
    quiz_id: int,
    questions: List[schemas.QuestionIn],
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.add_questions(db, quiz_id, current_teacher, questions)


@app.patch("/questions/{question_id}", response_model=schemas.QuestionOut)
def update_question(
    question_id: int,
    data: schemas.QuestionUpdate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.update_question(db, question_id, current_teacher, data)


@app.delete("/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    quiz_manager.delete_question(db, question_id, current_teacher)


# ============ Quiz attempts ============

@app.post("/quizzes/{quiz_id}/attempts", response_model=schemas.AttemptResult, status_code=status.HTTP_201_CREATED)
def submit_quiz_attempt(
    quiz_id: int,
    data: schemas.AttemptSubmit,
    current_student: User = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    return quiz_manager.submit_attempt(db, quiz_id, current_student, data)


@app.get("/quizzes/{quiz_id}/attempts", response_model=List[schemas.AttemptWithStudent])
def list_quiz_attempts(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return quiz_manager.list_attempts(db, quiz_id, current_user)


@app.get("/me/attempts", response_model=List[schemas.AttemptOut])
def my_attempts(current_student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    return quiz_manager.student_attempts(db, current_student)


@app.patch("/quiz-attempts/{attempt_id}", response_model=schemas.AttemptOut)
def review_quiz_attempt(
    attempt_id: int,
    data: schemas.AttemptReview,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return quiz_manager.review_attempt(db, attempt_id, current_teacher, data)


# ============ Assignments & submissions ============

@app.get("/assignments", response_model=List[schemas.AssignmentOut])
def list_assignments(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return assignment_manager.list_assignments(db, current_user)


@app.get("/assignments/{assignment_id}", response_model=schemas.AssignmentOut)
def get_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return assignment_manager.get_visible_assignment(db, assignment_id, current_user)


@app.post("/assignments", response_model=schemas.AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: schemas.AssignmentCreate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return assignment_manager.create_assignment(db, current_teacher, data)


@app.put("/assignments/{assignment_id}", response_model=schemas.AssignmentOut)
def update_assignment(
    assignment_id: int,
    data: schemas.AssignmentUpdate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return assignment_manager.update_assignment(db, assignment_id, current_teacher, data)


@app.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    assignment_manager.delete_assignment(db, assignment_id, current_teacher)


@app.put("/assignments/{assignment_id}/submission", response_model=schemas.SubmissionOut)
def submit_assignment(
    assignment_id: int,
    data: schemas.SubmissionCreate,
    current_student: User = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    return assignment_manager.submit(db, assignment_id, current_student, data)


@app.get("/assignments/{assignment_id}/submission", response_model=schemas.SubmissionOut)
def get_my_submission(
    assignment_id: int,
    current_student: User = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    return assignment_manager.get_submission(db, assignment_id, current_student)


@app.get("/assignments/{assignment_id}/submissions", response_model=List[schemas.SubmissionWithStudent])
def list_assignment_submissions(
    assignment_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return assignment_manager.list_submissions(db, assignment_id, current_teacher)


@app.get("/me/submissions", response_model=List[schemas.SubmissionWithAssignment])
def my_submissions(current_student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    return assignment_manager.student_submissions(db, current_student)


@app.post("/submissions/{submission_id}/grade", response_model=schemas.SubmissionOut)
def grade_submission(
    submission_id: int,
    data: schemas.SubmissionGrade,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return assignment_manager.grade_submission(db, submission_id, current_teacher, data)


# ============ Grades ============

@app.get("/me/grades", response_model=List[schemas.DetailedGrade])
def my_grades(current_student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    return gradebook.student_grades(db, current_student.id)


@app.get("/grades", response_model=List[schemas.DetailedGrade])
def all_grades(current_teacher: User = Depends(get_current_teacher), db: Session = Depends(get_db)):
    return gradebook.all_grades(db)


@app.get("/grades/students", response_model=List[schemas.StudentGradeSummary])
def grade_summary(
    search: Optional[str] = None,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return gradebook.student_summaries(db, search=search)


@app.put("/grades", response_model=schemas.GradeOut)
def upsert_grade(
    data: schemas.GradeUpsert,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return gradebook.save_grade(db, current_teacher, data)


@app.delete("/grades/{grade_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_grade(
    grade_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    gradebook.delete_grade(db, grade_id)


@app.get("/assignments/{assignment_id}/grades", response_model=List[schemas.DetailedGrade])
def assignment_grades(
    assignment_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    assignment_manager.get_owned_assignment(db, assignment_id, current_teacher)
    return gradebook.assignment_grades(db, assignment_id)


@app.get("/quizzes/{quiz_id}/grades", response_model=List[schemas.DetailedGrade])
def quiz_grades(
    quiz_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    quiz_manager.get_owned_quiz(db, quiz_id, current_teacher)
    return gradebook.quiz_grades(db, quiz_id)


# ============ Attendance ============

@app.post("/attendance", response_model=schemas.AttendanceOut)
def record_attendance(
    data: schemas.AttendanceCreate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.record(db, current_teacher, data)


@app.post("/attendance/bulk", response_model=List[schemas.AttendanceOut])
def record_bulk_attendance(
    data: schemas.BulkAttendance,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.record_bulk(db, current_teacher, data.date, data.statuses)


@app.get("/attendance", response_model=List[schemas.AttendanceWithStudent])
def attendance_by_date(
    day: date,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.by_date(db, day)


@app.get("/attendance/stats", response_model=schemas.AttendanceStats)
def attendance_stats(
    day: date,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.stats(db, day)


@app.get("/attendance/calendar", response_model=List[schemas.CalendarDay])
def attendance_calendar(
    today: Optional[date] = None,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return attendance_book.calendar(db, today or date.today())


@app.get("/me/attendance", response_model=schemas.StudentAttendance)
def my_attendance(current_student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    return attendance_book.student_attendance(db, current_student.id)


@app.get("/students/{student_id}/attendance", response_model=schemas.StudentAttendance)
def student_attendance(
    student_id: int,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    student = db.query(User).filter(User.id == student_id, User.role == "student").first()
    if not student:
        raise NotFoundError("Student not found")
    return attendance_book.student_attendance(db, student.id)


# ============ Online classes & meeting links ============

@app.get("/online-classes/ongoing", response_model=Optional[schemas.OnlineClassOut])
def ongoing_class(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return online_class_manager.ongoing(db)


@app.get("/online-classes/upcoming", response_model=List[schemas.OnlineClassOut])
def upcoming_classes(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return online_class_manager.upcoming(db)


@app.post("/online-classes", response_model=schemas.OnlineClassOut, status_code=status.HTTP_201_CREATED)
def create_online_class(
    data: schemas.OnlineClassCreate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return online_class_manager.create(db, current_teacher, data)


@app.patch("/online-classes/{class_id}/status", response_model=schemas.OnlineClassOut)
def set_online_class_status(
    class_id: int,
    data: schemas.OnlineClassStatusUpdate,
    current_teacher: User = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    return online_class_manager.set_status(db, class_id, current_teacher, data.status)


@app.post("/meet-links", response_model=schemas.MeetLinkOut, status_code=status.HTTP_201_CREATED)
def create_meet_link(current_teacher: User = Depends(get_current_teacher), db: Session = Depends(get_db)):
    return meet_service.create_link(db, current_teacher)


@app.get("/meet-links/current", response_model=Optional[schemas.MeetLinkOut])
def current_meet_link(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return meet_service.current_link(db)


# ============ Dashboards ============

@app.get("/dashboard/student", response_model=schemas.StudentDashboard)
def student_dashboard(current_student: User = Depends(get_current_student), db: Session = Depends(get_db)):
    return dashboards.student(db, current_student)


@app.get("/dashboard/teacher", response_model=schemas.TeacherDashboard)
def teacher_dashboard(current_teacher: User = Depends(get_current_teacher), db: Session = Depends(get_db)):
    return dashboards.teacher(db, current_teacher)
