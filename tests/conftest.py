"""Pytest fixtures and configuration for Moriminder tests."""

import pytest
import uuid
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from unittest.mock import patch

from moriminder.database.database import Base
from moriminder.database import models  # noqa: F401  (registers tables on Base)
from moriminder.database.repository import TaskRepository
from moriminder.engine.budget import NotificationBudget
from moriminder.engine.scheduler import ReminderScheduler
from moriminder.errors import DispatchFailed
from moriminder.models.task import Task, Priority, TaskKind
from moriminder.notifications.center import NotificationCenter
from moriminder.notifications.dispatcher import ReminderDispatcher
from moriminder.notifications.local_center import LocalNotificationCenter
from moriminder.services.task_service import TaskService


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Fixed reference time (a Monday) so scheduling math is deterministic
NOW = datetime(2025, 1, 6, 9, 0, 0)


class FakeNotificationCenter(NotificationCenter):
    """In-memory notification center with a configurable baseline of pending notifications."""

    def __init__(self, pending: int = 0, fail_times=None):
        self.pending = pending
        self.fail_times = set(fail_times or [])
        self.scheduled = []

    def pending_count(self) -> int:
        return self.pending + len(self.scheduled)

    def schedule(self, task_id, fire_time, kind):
        if fire_time in self.fail_times:
            raise DispatchFailed("rejected by platform", task_id=task_id)
        notification_id = str(uuid.uuid4())
        self.scheduled.append((notification_id, task_id, fire_time, kind))
        return notification_id

    def cancel_all(self, task_id) -> int:
        before = len(self.scheduled)
        self.scheduled = [n for n in self.scheduled if n[1] != task_id]
        return before - len(self.scheduled)

    def fire_times(self, task_id):
        return sorted(n[2] for n in self.scheduled if n[1] == task_id)


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def make_fake_center():
    """Factory for FakeNotificationCenter instances."""
    return FakeNotificationCenter


@pytest.fixture
def fake_center():
    return FakeNotificationCenter()


@pytest.fixture
def fake_budget(fake_center):
    return NotificationBudget(fake_center, limit=64)


@pytest.fixture
def notification_center(db_session: Session):
    """Database-backed notification center."""
    return LocalNotificationCenter(db_session)


@pytest.fixture
def task_service(task_repository, notification_center):
    """TaskService wired to the in-memory database."""
    scheduler = ReminderScheduler(NotificationBudget(notification_center, limit=64))
    return TaskService(task_repository, ReminderDispatcher(notification_center, scheduler))


@pytest.fixture
def sample_task_base():
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "title": "Test Task",
        "notes": "Test notes",
        "priority": Priority.MEDIUM,
        "kind": TaskKind.DEADLINE_TASK,
        "created_at": NOW,
        "updated_at": NOW,
        "deadline": None,
        "start_time": None,
        "reminder_enabled": True,
        "reminder_interval_min": 60,
        "reminder_start_time": None,
        "reminder_end_time": None,
        "is_completed": False,
        "is_repeating": False,
        "recurrence": None,
        "recurrence_end_date": None,
        "parent_task_id": None,
    }


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def task_with_deadline(sample_task_base):
    """Deadline task due 10 hours from NOW."""
    return Task(**{**sample_task_base, "deadline": NOW + timedelta(hours=10)})


@pytest.fixture
def repeating_task(sample_task_base):
    """Daily repeating task due 10 hours from NOW."""
    return Task(**{
        **sample_task_base,
        "title": "Water the plants",
        "deadline": NOW + timedelta(hours=10),
        "is_repeating": True,
        "recurrence": {"type": "daily"},
    })


@pytest.fixture
def test_client(db_session: Session):
    """Create a FastAPI test client with overridden database dependency."""
    from moriminder.api.app import app
    from moriminder.database.database import get_db

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db

    # Schema is created by db_session; skip creating the default database file
    with patch("moriminder.api.app.init_db"):
        with TestClient(app) as client:
            yield client

    app.dependency_overrides.clear()
