from __future__ import annotations

import os

# Before any app import: settings and the engine are built at import time
os.environ["DATABASE_URL"] = "sqlite://"

import time
from datetime import date, datetime, timezone
from typing import Callable

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.scheduling_rules import SchedulingRules
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.appointment import Appointment, AppointmentState
from app.scheduler.expiry_job import build_expiry_scheduler
from app.scheduler.expiry_scheduler import ExpiryScheduler, shutdown_scheduler
from app.services.appointment_service import AppointmentService

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
DAY = date(2030, 1, 3)
PROVIDER = "dHouse"


class FakeClock:
    """Settable now() for lead-time checks."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def scheduler():
    s = BackgroundScheduler(timezone=timezone.utc)
    s.start()
    yield s
    shutdown_scheduler(s)


@pytest.fixture
def rules() -> SchedulingRules:
    return SchedulingRules(duration_minutes=15, lead_time_hours=24, unconfirmed_expiry_minutes=15)


@pytest.fixture
def expiry(scheduler, rules) -> ExpiryScheduler:
    return build_expiry_scheduler(scheduler, rules)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(db, expiry, rules, clock) -> AppointmentService:
    return AppointmentService(db, expiry, rules, clock=clock)


@pytest.fixture
def make_appointment(db):
    def _make(
        time: datetime,
        provider: str = PROVIDER,
        state: AppointmentState = AppointmentState.AVAILABLE,
        client: str | None = None,
    ) -> Appointment:
        row = Appointment(provider=provider, time=time, state=state, client=client)
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def thread_sessions(tmp_path):
    """
    Session factory on a file-backed SQLite database, one real connection per session, for tests
    that drive the service from several threads at once.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'appointments.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(file_engine)
    try:
        yield sessionmaker(bind=file_engine, autoflush=False)
    finally:
        file_engine.dispose()
