from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.database import Base, get_db
from main import app

PASSWORD = "secret123"


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email, role="student", name=None):
    res = client.post(
        "/register",
        json={"email": email, "password": PASSWORD, "name": name or email.split("@")[0], "role": role},
    )
    assert res.status_code == 201, res.text
    return res.json()


def login(client, email, password=PASSWORD):
    res = client.post("/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def auth_headers(client, email, role="student", name=None):
    profile = register(client, email, role, name)
    tokens = login(client, email)
    return profile, {"Authorization": f"Bearer {tokens['access_token']}"}


def future(days=2, hours=0):
    return (datetime.utcnow() + timedelta(days=days, hours=hours)).isoformat()


def past(days=1):
    return (datetime.utcnow() - timedelta(days=days)).isoformat()


@pytest.fixture()
def teacher(client):
    return auth_headers(client, "teacher@school.test", "teacher", "Ms Teacher")


@pytest.fixture()
def student(client):
    return auth_headers(client, "alice@school.test", "student", "Alice")


@pytest.fixture()
def other_student(client):
    return auth_headers(client, "bob@school.test", "student", "Bob")


@pytest.fixture()
def teacher_headers(teacher):
    return teacher[1]


@pytest.fixture()
def student_headers(student):
    return student[1]


def sample_quiz(**overrides):
    quiz = {
        "title": "Fractions check",
        "description": "Week 3",
        "due_date": future(),
        "time_limit": 10,
        "questions": [
            {
                "question_type": "multiple-choice",
                "question_text": "1/2 + 1/4 = ?",
                "options": ["1/6", "3/4", "2/6"],
                "correct_answer": "1",
                "points": 10,
            },
            {
                "question_type": "true-false",
                "question_text": "0.5 equals 1/2",
                "correct_answer": "1",
                "points": 5,
            },
            {
                "question_type": "short-answer",
                "question_text": "Explain what a denominator is",
                "correct_answer": "The bottom number",
                "points": 5,
            },
        ],
    }
    quiz.update(overrides)
    return quiz


def sample_assignment(**overrides):
    assignment = {
        "title": "Essay on photosynthesis",
        "description": "500 words",
        "due_date": future(days=3),
        "max_points": 100,
    }
    assignment.update(overrides)
    return assignment
