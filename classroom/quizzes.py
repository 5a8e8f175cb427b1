import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from db.models.grades import Grade
from db.models.quiz_attempts import QuizAttempt
from db.models.quizzes import Quiz, Question
from db.models.users import User

from .errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .gradebook import Gradebook
from .quiz_engine import QuizEngine

logger = logging.getLogger(__name__)


class QuizManager:
    def __init__(self, engine: QuizEngine = None, gradebook: Gradebook = None):
        self.engine = engine or QuizEngine()
        self.gradebook = gradebook or Gradebook()

    # ============ lookups ============

    def get_quiz(self, db: Session, quiz_id: int) -> Quiz:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz

    def get_visible_quiz(self, db: Session, quiz_id: int, user: User) -> Quiz:
        quiz = self.get_quiz(db, quiz_id)
        # drafts stay hidden from students
        if user.role == "student" and quiz.status == "draft":
            raise NotFoundError("Quiz not found")
        return quiz

    def get_owned_quiz(self, db: Session, quiz_id: int, teacher: User) -> Quiz:
        quiz = self.get_quiz(db, quiz_id)
        if quiz.created_by != teacher.id:
            raise PermissionDeniedError("You can only manage your own quizzes")
        return quiz

    def list_quizzes(self, db: Session, user: User) -> List[Quiz]:
        query = db.query(Quiz)
        if user.role == "teacher":
            query = query.filter(Quiz.created_by == user.id)
        else:
            query = query.filter(Quiz.status == "published")
        return query.order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()

    # ============ quiz CRUD ============

    def _build_questions(self, questions) -> List[Question]:
        built = []
        for idx, q in enumerate(questions):
            options = q.options if q.question_type == "multiple-choice" else None
            self.engine.validate_question(q.question_type, options, q.correct_answer, q.points)
            built.append(
                Question(
                    question_type=q.question_type,
                    question_text=q.question_text.strip(),
                    options=options,
                    correct_answer=str(q.correct_answer).strip(),
                    points=q.points,
                    order_index=idx,
                )
            )
        return built

    def create_quiz(self, db: Session, teacher: User, data) -> Quiz:
        if not data.title.strip() or not data.questions:
            raise ValidationError("Please fill all required fields and add at least one question.")

        quiz = Quiz(
            title=data.title.strip(),
            description=data.description or "",
            created_by=teacher.id,
            due_date=data.due_date,
            time_limit=data.time_limit,
            attempts_allowed=data.attempts_allowed,
            status=data.status,
        )
        quiz.questions = self._build_questions(data.questions)

        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        logger.info("Quiz %s created by teacher %s with %d questions", quiz.id, teacher.id, len(quiz.questions))
        return quiz

    def update_quiz(self, db: Session, quiz_id: int, teacher: User, data) -> Quiz:
        quiz = self.get_owned_quiz(db, quiz_id, teacher)

        fields = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"questions"})
        for key, value in fields.items():
            if key == "title":
                value = value.strip()
            setattr(quiz, key, value)

        if data.questions is not None:
            if not data.questions:
                raise ValidationError("A quiz needs at least one question.")
            # wholesale replace: old questions are removed, new ones inserted in order
            new_questions = self._build_questions(data.questions)
            quiz.questions.clear()
            db.flush()
            quiz.questions.extend(new_questions)

        db.commit()
        db.refresh(quiz)
        logger.info("Quiz %s updated", quiz.id)
        return quiz

    def set_status(self, db: Session, quiz_id: int, teacher: User, status: str) -> Quiz:
        quiz = self.get_owned_quiz(db, quiz_id, teacher)
        quiz.status = status
        db.commit()
        db.refresh(quiz)
        logger.info("Quiz %s is now %s", quiz.id, status)
        return quiz

    def delete_quiz(self, db: Session, quiz_id: int, teacher: User):
        quiz = self.get_owned_quiz(db, quiz_id, teacher)

        attempt_ids = [a.id for a in quiz.attempts]
        if attempt_ids:
            db.query(Grade).filter(Grade.quiz_attempt_id.in_(attempt_ids)).delete(synchronize_session=False)

        db.delete(quiz)
        db.commit()
        logger.info("Quiz %s deleted by teacher %s", quiz_id, teacher.id)

    # ============ questions ============

    def add_questions(self, db: Session, quiz_id: int, teacher: User, questions) -> List[Question]:
        quiz = self.get_owned_quiz(db, quiz_id, teacher)
        if not questions:
            raise ValidationError("No questions to add")

        start = len(quiz.questions)
        added = self._build_questions(questions)
        for offset, q in enumerate(added):
            q.order_index = start + offset
            quiz.questions.append(q)

        db.commit()
        for q in added:
            db.refresh(q)
        return added

    def _owned_question(self, db: Session, question_id: int, teacher: User) -> Question:
        question = db.query(Question).filter(Question.id == question_id).first()
        if not question:
            raise NotFoundError("Question not found")
        if question.quiz.created_by != teacher.id:
            raise PermissionDeniedError("You can only manage your own quizzes")
        return question

    def update_question(self, db: Session, question_id: int, teacher: User, data) -> Question:
        question = self._owned_question(db, question_id, teacher)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)

        question_type = updates.get("question_type", question.question_type)
        options = updates.get("options", question.options)
        if question_type != "multiple-choice":
            options = None
        correct_answer = str(updates.get("correct_answer", question.correct_answer)).strip()
        points = updates.get("points", question.points)
        self.engine.validate_question(question_type, options, correct_answer, points)

        question.question_type = question_type
        question.options = options
        question.correct_answer = correct_answer
        question.points = points
        if "question_text" in updates:
            question.question_text = updates["question_text"].strip()
        if "order_index" in updates:
            question.order_index = updates["order_index"]

        db.commit()
        db.refresh(question)
        return question

    def delete_question(self, db: Session, question_id: int, teacher: User):
        question = self._owned_question(db, question_id, teacher)
        quiz = question.quiz
        quiz.questions.remove(question)
        db.flush()

        for idx, q in enumerate(sorted(quiz.questions, key=lambda x: x.order_index)):
            q.order_index = idx
        db.commit()

    # ============ attempts ============

    def submit_attempt(self, db: Session, quiz_id: int, student: User, data) -> Dict[str, Any]:
        quiz = self.get_visible_quiz(db, quiz_id, student)
        if quiz.status != "published":
            raise ConflictError("This quiz is not accepting attempts.")

        previous = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz.id, QuizAttempt.student_id == student.id)
            .count()
        )
        if previous >= (quiz.attempts_allowed or 1):
            logger.warning("Student %s tried to retake quiz %s", student.id, quiz.id)
            raise ConflictError("You have already taken this quiz.")

        graded = self.engine.grade(quiz.questions, data.answers)

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            student_id=student.id,
            answers=data.answers,
            score=graded["score"],
            max_score=graded["max_score"],
            time_spent=self.engine.clamp_time_spent(data.time_spent, quiz.time_limit),
        )
        db.add(attempt)
        db.flush()

        # auto-scored attempts are graded on behalf of the quiz owner
        self.gradebook.upsert_grade(
            db,
            student_id=student.id,
            graded_by=quiz.created_by,
            quiz_attempt_id=attempt.id,
            commit=False,
        )
        db.commit()
        db.refresh(attempt)
        logger.info(
            "Student %s scored %s/%s on quiz %s", student.id, attempt.score, attempt.max_score, quiz.id
        )

        return {
            "id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "student_id": attempt.student_id,
            "answers": attempt.answers,
            "score": attempt.score,
            "max_score": attempt.max_score,
            "time_spent": attempt.time_spent,
            "completed_at": attempt.completed_at,
            "results": graded["results"],
            "needs_review": graded["needs_review"],
        }

    def list_attempts(self, db: Session, quiz_id: int, user: User) -> List[Dict[str, Any]]:
        if user.role == "teacher":
            self.get_owned_quiz(db, quiz_id, user)
            query = db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz_id)
        else:
            self.get_visible_quiz(db, quiz_id, user)
            query = db.query(QuizAttempt).filter(
                QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == user.id
            )

        attempts = query.order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc()).all()
        return [self._attempt_with_student(a) for a in attempts]

    def student_attempts(self, db: Session, student: User) -> List[QuizAttempt]:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.student_id == student.id)
            .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .all()
        )

    def review_attempt(self, db: Session, attempt_id: int, teacher: User, data) -> QuizAttempt:
        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Quiz attempt not found")
        if attempt.quiz.created_by != teacher.id:
            raise PermissionDeniedError("You can only review attempts on your own quizzes")
        if data.score > attempt.max_score:
            raise ValidationError(f"Score cannot exceed {attempt.max_score:g}")

        attempt.score = data.score
        self.gradebook.upsert_grade(
            db,
            student_id=attempt.student_id,
            graded_by=teacher.id,
            feedback=data.feedback,
            quiz_attempt_id=attempt.id,
            commit=False,
        )
        db.commit()
        db.refresh(attempt)
        logger.info("Attempt %s re-scored to %s by teacher %s", attempt.id, attempt.score, teacher.id)
        return attempt

    @staticmethod
    def _attempt_with_student(attempt: QuizAttempt) -> Dict[str, Any]:
        return {
            "id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "student_id": attempt.student_id,
            "answers": attempt.answers or {},
            "score": attempt.score,
            "max_score": attempt.max_score,
            "time_spent": attempt.time_spent,
            "completed_at": attempt.completed_at,
            "student_name": attempt.student.name if attempt.student else None,
            "student_email": attempt.student.email if attempt.student else None,
        }
