"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Database fixtures run against a private in-memory SQLite database per test.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Keep test runs away from any local database or log file
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.assessment.attempts import AttemptManager, UserIdentity  # noqa: E402
from src.assessment.authoring import QuizAuthoring  # noqa: E402
from src.assessment.enums import QuestionType  # noqa: E402
from src.db.models import Base  # noqa: E402
from src.db.repository import QuizRepository  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Database
# ========================================


@pytest.fixture
def engine():
    """Fresh in-memory database with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(session):
    return QuizRepository(session)


@pytest.fixture
def authoring(repo):
    return QuizAuthoring(repo)


@pytest.fixture
def manager(repo):
    return AttemptManager(repo)


@pytest.fixture
def learner():
    return UserIdentity(user_id="user-1", name="Ada Learner", email="ada@example.com")


# ========================================
# Sample Content
# ========================================


@pytest.fixture
def mc_question():
    """Multiple choice question worth 10 points, correct answer B."""
    return {
        "question_text": "Which item protects your head on site?",
        "question_type": QuestionType.MULTIPLE_CHOICE,
        "payload": {
            "options": {"A": "Gloves", "B": "Hard hat", "C": "Boots"},
            "correct_answer": "B",
        },
        "points": 10,
        "category": "PPE",
    }


@pytest.fixture
def essay_question():
    return {
        "question_text": "Describe the evacuation procedure.",
        "question_type": QuestionType.ESSAY,
        "payload": {"min_word_count": 10},
        "points": 5,
        "category": "Procedures",
    }


@pytest.fixture
def make_quiz(authoring):
    """
    Build a quiz with the given question dicts.

    Questions are served in authoring order unless the caller asks for
    randomize_questions; the quiz is published unless publish=False.
    """

    def _make(questions, publish=True, title="Site Safety Basics", **fields):
        fields.setdefault("randomize_questions", False)
        quiz = authoring.create_quiz(title, **fields)
        for data in questions:
            data = dict(data)
            authoring.create_question(
                data.pop("question_text"),
                data.pop("question_type"),
                data.pop("payload"),
                quiz_id=quiz.id,
                **data,
            )
        if publish:
            authoring.publish_quiz(quiz.id)
        return quiz

    return _make


# ========================================
# API
# ========================================


@pytest.fixture
def client(session_factory):
    """TestClient whose requests each run in their own committed session."""
    from fastapi.testclient import TestClient

    from src.api.main import app
    from src.db.database import get_session

    def _get_session():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()
