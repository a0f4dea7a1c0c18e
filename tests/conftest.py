"""Pytest fixtures for employee engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from employee_engine.config import EngineConfig
from employee_engine.database import create_engine, create_session_factory, create_tables
from employee_engine.models import EmployeeRecord
from employee_engine.services.audit_trail import Actor
from employee_engine.services.employee_service import EmployeeService


class SteppingClock:
    """Deterministic clock that moves forward by ``step`` on every read."""

    def __init__(
        self,
        start: datetime = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ):
        self.current = start
        self.step = step

    def now(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta

    def set(self, value: datetime) -> None:
        self.current = value


class RecordingNotificationSender:
    """Notification sender that remembers what it was asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, UUID, str | None, dict[str, Any]]] = []

    async def send(
        self,
        kind: str,
        employee_id: UUID,
        recipient: str | None,
        context: dict[str, Any],
    ) -> None:
        if self.fail:
            raise RuntimeError("mail server unavailable")
        self.sent.append((kind, employee_id, recipient, context))


class FakeDocumentStore:
    """Document store that knows a fixed set of references."""

    def __init__(self, refs: set[str] | None = None):
        self.refs = refs or set()
        self.checked: list[str] = []

    async def exists(self, content_ref: str) -> bool:
        self.checked.append(content_ref)
        return content_ref in self.refs


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite database per test, so concurrent sessions work."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'employees.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test database."""
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> SteppingClock:
    """Clock starting at 2025-01-15 09:00 UTC."""
    return SteppingClock()


@pytest.fixture
def notifier() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def service(session_factory, clock, notifier, config) -> EmployeeService:
    """Employee service wired to the test database and fakes."""
    return EmployeeService(session_factory, clock=clock, notifier=notifier, config=config)


@pytest.fixture
def actor() -> Actor:
    return Actor.user("admin-1")


def employee_payload(**overrides: Any) -> dict[str, Any]:
    """Valid create payload; override any field."""
    payload: dict[str, Any] = {
        "name": "Rahim Uddin",
        "role": "Tour Guide",
        "contact_info": {
            "phone": "+8801712345678",
            "email": "rahim@example.com",
        },
        "employment_type": "full_time",
        "salary": "50000",
        "currency": "BDT",
        "date_of_joining": date(2024, 3, 1),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def employee(service, actor):
    """An active employee on 50000 BDT."""
    return await service.create_employee(employee_payload(), actor)


async def make_record(session: AsyncSession, clock: SteppingClock, **overrides: Any) -> EmployeeRecord:
    """Insert a bare employee record for component-level tests."""
    now = clock.now()
    values: dict[str, Any] = {
        "name": "Karim Ahmed",
        "role": "Driver",
        "phone": "+8801811111111",
        "status": "active",
        "employment_type": "full_time",
        "payment_mode": "manual",
        "salary": Decimal("30000"),
        "currency": "BDT",
        "date_of_joining": date(2024, 1, 1),
        "is_deleted": False,
        "created_at": now,
        "updated_at": now,
        "documents": [],
        "shifts": [],
    }
    values.update(overrides)
    record = EmployeeRecord(**values)
    session.add(record)
    await session.flush()
    return record
