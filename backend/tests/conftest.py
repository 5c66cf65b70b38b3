"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers all tables on Base.metadata
from app.api.v1.endpoints.schedules import get_execution_runner
from app.connectors.base import EmailSender, GeneratedUpdate, UpdateGenerator
from app.database import Base, get_db
from app.main import app
from app.models.schedule import Schedule
from app.services.execution_runner import ExecutionRunner
from app.services.notification_gate import NotificationGate

# Wednesday, midday UTC
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock injected wherever the code asks for 'now'."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield TestSession
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def update_generator():
    generator = AsyncMock(spec=UpdateGenerator)
    generator.generate_update.return_value = GeneratedUpdate(update_id="upd-1", formatted_output="Did things")
    return generator


@pytest.fixture
def email_sender():
    sender = AsyncMock(spec=EmailSender)
    sender.send_update_email.return_value = None
    return sender


@pytest.fixture
def gate(session_factory, clock) -> NotificationGate:
    return NotificationGate(session_factory, clock=clock)


@pytest.fixture
def runner(session_factory, update_generator, email_sender, gate, clock) -> ExecutionRunner:
    return ExecutionRunner(
        session_factory,
        update_generator,
        email_sender,
        gate,
        clock=clock,
        timeout_seconds=0.5,
    )


@pytest.fixture
def make_schedule(session_factory):
    """Insert a schedule row and return its id."""
    def _make(**overrides) -> int:
        values = dict(
            owner_id="admin",
            name="Standup",
            update_type="daily",
            content_template="Worked on the scheduler",
            frequency="daily",
            time_of_day="09:00",
            timezone="UTC",
            tag_ids=[],
            send_email=False,
            recipients=[],
            is_active=True,
            next_run=None,
        )
        values.update(overrides)
        with session_factory() as db:
            schedule = Schedule(**values)
            db.add(schedule)
            db.commit()
            return schedule.id
    return _make


@pytest.fixture
def client(session_factory, update_generator, email_sender) -> TestClient:
    def override_get_db() -> Session:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    # Requests stamp records with the real clock, so the API runner does too
    api_runner = ExecutionRunner(
        session_factory,
        update_generator,
        email_sender,
        NotificationGate(session_factory),
        timeout_seconds=0.5,
    )
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_execution_runner] = lambda: api_runner
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    response = client.post("/token", data={"username": "admin", "password": "changeme"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
