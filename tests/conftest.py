"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all IntakeAware tests.
Fixtures include database sessions, test clients, sample data, and fakes.
"""

import os
import sys
from contextlib import contextmanager
from datetime import datetime, date, timedelta
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, get_db
from models import (
    User, Medication, MedicationSchedule, MedicationIntakeLog,
    IntakeStatus, TimeSlot
)
from tools.intake_metrics import ScheduleRecord, IntakeLogRecord
from api.deps import get_snapshot_refresh_queue
from app import app


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a test database session"""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def session_scope(db_session: Session):
    """Transaction scope over the test session, shaped like get_db_context"""
    @contextmanager
    def _scope() -> Generator[Session, None, None]:
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    return _scope


class FakeRefreshQueue:
    """Records refresh requests instead of running them"""

    def __init__(self):
        self.calls = []

    def schedule(self, user_id: int, time_window: Optional[str] = None):
        self.calls.append((user_id, time_window))
        return None


@pytest.fixture
def refresh_queue() -> FakeRefreshQueue:
    return FakeRefreshQueue()


@pytest.fixture(scope="function")
def client(db_session: Session, refresh_queue: FakeRefreshQueue) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database and refresh queue overrides"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_snapshot_refresh_queue] = lambda: refresh_queue

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def today() -> date:
    return datetime.utcnow().date()


@pytest.fixture
def test_user(db_session: Session) -> User:
    """Create and return a test user"""
    user = User(email="jane.doe@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session: Session) -> User:
    """A second user owning nothing of test_user's"""
    user = User(email="someone.else@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_medication(db_session: Session, test_user: User) -> Medication:
    """Create and return a test medication linked to test user"""
    medication = Medication(user_id=test_user.id, name="Metformin")
    db_session.add(medication)
    db_session.commit()
    db_session.refresh(medication)
    return medication


@pytest.fixture
def test_schedule(db_session: Session, test_medication: Medication) -> MedicationSchedule:
    """Morning schedule created 20 days ago"""
    schedule = MedicationSchedule(
        medication_id=test_medication.id,
        time_slot=TimeSlot.MORNING,
        frequency="once-daily",
        timing="08:00 with breakfast",
        created_at=datetime.utcnow() - timedelta(days=20),
    )
    db_session.add(schedule)
    db_session.commit()
    db_session.refresh(schedule)
    return schedule


@pytest.fixture
def recent_intake_logs(
    db_session: Session,
    test_user: User,
    test_medication: Medication,
    test_schedule: MedicationSchedule,
    today: date
) -> List[MedicationIntakeLog]:
    """Three logs for the last three days, the middle one missed"""
    logs = []
    for days_ago, status in [(2, IntakeStatus.TAKEN), (1, IntakeStatus.MISSED), (0, IntakeStatus.TAKEN)]:
        log_date = today - timedelta(days=days_ago)
        log = MedicationIntakeLog(
            user_id=test_user.id,
            medication_id=test_medication.id,
            schedule_id=test_schedule.id,
            scheduled_time=TimeSlot.MORNING,
            actual_time=(
                datetime(log_date.year, log_date.month, log_date.day, 9, 15)
                if status == IntakeStatus.TAKEN else None
            ),
            status=status,
            observation="mild headache" if status == IntakeStatus.TAKEN else None,
            log_date=log_date,
        )
        db_session.add(log)
        logs.append(log)

    db_session.commit()
    for log in logs:
        db_session.refresh(log)

    return logs


# ==================== RECORD BUILDERS ====================

@pytest.fixture
def make_schedule():
    """Factory for ScheduleRecord inputs of the metrics engine"""
    def _make(schedule_id: int = 1, medication_id: int = 1, time_slot: str = "MORNING",
              created_at: datetime = datetime(2024, 1, 1)) -> ScheduleRecord:
        return ScheduleRecord(
            id=schedule_id,
            medication_id=medication_id,
            time_slot=time_slot,
            created_at=created_at,
        )
    return _make


@pytest.fixture
def make_log():
    """Factory for IntakeLogRecord inputs of the metrics engine"""
    def _make(log_date: str, status: str = "TAKEN", schedule_id: int = 1, medication_id: int = 1,
              actual_time: Optional[datetime] = None, observation: Optional[str] = None) -> IntakeLogRecord:
        return IntakeLogRecord(
            medication_id=medication_id,
            schedule_id=schedule_id,
            status=status,
            log_date=log_date,
            actual_time=actual_time,
            observation=observation,
        )
    return _make


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")
