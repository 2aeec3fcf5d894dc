"""Pytest configuration and shared fixtures for HabitTrack tests.

Provides an isolated SQLite database per test, a session factory matching the
one the service expects, a controllable clock and small data factories.
"""

from __future__ import annotations

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

# Import all models to ensure they're registered with SQLModel metadata
from habittrack.models import CompletionEntry, Habit  # noqa: F401
from habittrack.services.habits import HabitService, KeyedLocks

# Wednesday; the Monday-Sunday week runs 2024-03-04 .. 2024-03-10
START = datetime(2024, 3, 6, 9, 0, 0)


class FakeClock:
    """Callable clock the tests move forward explicitly."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current += timedelta(**delta)
        return self.current


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for direct inspection in a single test."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory for the service, which expects Callable[[], Session]."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def service(session_factory, clock) -> HabitService:
    return HabitService(session_factory, clock=clock, locks=KeyedLocks())


@pytest.fixture
def habit_factory(service):
    """Factory for creating habits through the service.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(name: str = "Exercise", user_id: str = "user-1", **fields) -> Habit:
        payload = {"name": name, **fields}
        return service.create_habit(user_id, payload)

    return _create_habit


@pytest.fixture
def make_habit():
    """Build a transient habit for pure state-machine tests (no database)."""

    def _make(name: str = "Read", owner_id: str = "user-1", **fields) -> Habit:
        return Habit(owner_id=owner_id, name=name, entries=[], **fields)

    return _make
