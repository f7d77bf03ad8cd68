import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tutorquiz.models  # noqa: F401
from tutorquiz.core.auth import create_token
from tutorquiz.core.database import Base, get_db
from tutorquiz.main import app
from tutorquiz.schemas import QuizCreate
from tutorquiz.services import quiz_service

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def mc_question(text="What is 2 + 2?", correct=(1,), n=3, points=10, **extra):
    answers = [{"answer_text": f"Option {i}", "is_correct": i in correct} for i in range(n)]
    return {"question_text": text, "question_type": "multiple_choice", "points": points, "answers": answers, **extra}


def tf_question(text="The earth orbits the sun.", truth=True, points=10, **extra):
    answers = [{"answer_text": "True", "is_correct": truth}, {"answer_text": "False", "is_correct": not truth}]
    return {"question_text": text, "question_type": "true_false", "points": points, "answers": answers, **extra}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db):
    return TestingSession


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _auth(user_id, *roles):
        return {"Authorization": f"Bearer {create_token(user_id, list(roles))}"}
    return _auth


@pytest.fixture
def mc():
    return mc_question


@pytest.fixture
def tf():
    return tf_question


@pytest.fixture
def make_quiz(db):
    def _make(owner="tutor-1", questions=(), role="tutor", **fields):
        data = {"title": "Algebra Basics", "subject": "Math", "total_questions": max(len(questions), 1)}
        data.update(fields)
        data["questions"] = list(questions)
        return quiz_service.create_quiz(db, owner, QuizCreate(**data), role=role)
    return _make


@pytest.fixture
def three_question_quiz(make_quiz):
    return make_quiz(questions=[mc_question(f"Question {i}") for i in range(1, 4)], total_questions=3)
