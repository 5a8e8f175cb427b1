# python -m db.init_db

from db.database import Base, engine
from db.models.users import User
from db.models.refresh_tokens import RefreshToken
from db.models.quizzes import Quiz, Question
from db.models.quiz_attempts import QuizAttempt
from db.models.assignments import Assignment
from db.models.submissions import Submission
from db.models.grades import Grade
from db.models.attendance import AttendanceRecord
from db.models.online_classes import OnlineClass, MeetLink


def init_db():
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    print("Creating tables...")
    init_db()
    print("Done")
