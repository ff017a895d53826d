import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prepdesk import models  # noqa: F401
from prepdesk.config.database import Base, build_engine, get_db
from prepdesk.main import app
from prepdesk.repositories import HierarchyRepository
from prepdesk.services.context_resolver import ContextResolver
from prepdesk.services.seeding import HierarchySeeder

BIOLOGY_TOPICS = ["Cell Biology", "Genetics", "Ecology", "Evolution", "Nutrition", "Respiration"]

HIERARCHY = {
    "exams": [
        {
            "name": "wassce",
            "display_name": "WASSCE",
            "subjects": [
                {"name": "Biology", "topics": BIOLOGY_TOPICS},
                {"name": "Chemistry", "topics": ["Atomic Structure"]},
            ],
            "sub_categories": [
                {
                    "name": "PastQuestions",
                    "display_name": "Past Questions",
                    "tracks": [{"name": "WASSCE Past Questions", "track_type": "years"}],
                },
                {
                    "name": "StudyPlan",
                    "display_name": "Study Plan",
                    "tracks": [
                        {"name": "Biology Weekly", "track_type": "weeks", "duration": 12},
                        {"name": "Daily Drill", "track_type": "days", "duration": 30},
                        {"name": "Semester Plan", "track_type": "semester", "duration": 2},
                        {"name": "Monthly Review", "track_type": "months", "duration": 12},
                    ],
                },
            ],
        }
    ]
}


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    outcome = HierarchySeeder(session).seed(HIERARCHY)
    assert outcome["success"]
    yield session
    session.close()


@pytest.fixture
def client(session_factory, db):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def resolve(db, track_name, sub_category="StudyPlan", expected=None):
    return ContextResolver(HierarchyRepository(db)).resolve(
        "WASSCE", "Biology", track_name, sub_category, expected
    ).unwrap()


@pytest.fixture
def weekly(db):
    return resolve(db, "Biology Weekly")


@pytest.fixture
def semester_plan(db):
    return resolve(db, "Semester Plan")


@pytest.fixture
def past_questions(db):
    return resolve(db, "WASSCE Past Questions", "PastQuestions")


def make_items(*names):
    return [{"name": name, "description": f"About {name}"} for name in names]


def make_questions(topic, count, prefix="q"):
    return [
        {
            "topic": topic,
            "name": f"{prefix}{i + 1}",
            "question": f"{topic} question {i + 1}?",
            "correct_answer": "A",
            "incorrect_answers": ["B", "C", "D"],
        }
        for i in range(count)
    ]
