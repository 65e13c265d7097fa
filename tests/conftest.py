import os

# Must be set before the app modules read settings.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEMO_DATA", "false")

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.deps import get_db
from database import session as db_session_module  # noqa: F401  (registers all tables)
from main import app
from models.base import Base
from models.choices import FrequencyUnit, Weekday
from models.patient import Patient
from models.schedule import ResearchSchedule
from services.eligibility import ScheduleRules

# 2024-01-07 is a Sunday.
SUNDAY = date(2024, 1, 7)
MONDAY = date(2024, 1, 8)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def fk_db():
    """Session on an engine that enforces foreign keys, like Postgres does."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def SessionTesting(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(SessionTesting):
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(SessionTesting):
    def _override_get_db():
        session = SessionTesting()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(db):
    p = Patient(patient_code="MT-001", name="Test Participant")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def add_schedule(db, patient_id, start=SUNDAY, weeks=4, **overrides):
    days = overrides.pop("days_of_week", [0, 1, 2, 3, 4, 5, 6])
    values = dict(
        patient_id=patient_id,
        start_date=start,
        end_date=start + timedelta(days=weeks * 7),
        total_weeks=weeks,
        days_of_week=days,
        sessions_per_week=len(days),
        session_duration_minutes=30,
        total_expected_sessions=weeks * len(days),
        music_frequency=1,
        music_frequency_unit="daily",
        survey_frequency=1,
        survey_frequency_unit="daily",
        selected_music_types=[],
        active_survey_types=[],
        is_active=True,
        created_by="test",
    )
    values.update(overrides)
    schedule = ResearchSchedule(**values)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def make_rules(**overrides) -> ScheduleRules:
    values = dict(
        start_date=SUNDAY,
        end_date=SUNDAY + timedelta(days=28),
        total_weeks=4,
        weekdays=frozenset(Weekday),
        session_frequency=1,
        session_unit=FrequencyUnit.DAILY,
        survey_frequency=1,
        survey_unit=FrequencyUnit.DAILY,
        total_expected_sessions=28,
    )
    values.update(overrides)
    return ScheduleRules(**values)
