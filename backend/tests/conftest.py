"""
Test configuration and shared fixtures for the booking calendar test suite.

Runs against a temporary SQLite file migrated with Alembic once per session.
Services commit their own transactions, so isolation comes from wiping every
table after each test and re-seeding the rows a deployment always has.
"""

import os
import tempfile
from pathlib import Path

# Must be set before any application module reads configuration
_TEST_DB_DIR = tempfile.mkdtemp(prefix="booking-calendar-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_TEST_DB_DIR) / 'test.db'}"
os.environ["OTP_HASH_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_EMAIL"] = ""
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""

import pytest
from typing import Generator

from alembic import command
from alembic.config import Config
from sqlalchemy.orm import Session

from core.config import DATABASE_URL
from core.database import Base, SessionLocal, engine
from services.availability_service import AvailabilityService
from services.booking_guard import BookingGuard

from tests.utils import FailingNotifier, FakeNotifier

BACKEND_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture(scope="session")
def db_engine():
    """The application engine, pointed at the temporary SQLite file."""
    yield engine
    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """
    Build the schema by running every migration from scratch.

    This keeps the baseline migration and the ORM models honest with each
    other: tests fail if a model column is missing from the migration.
    """
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
    command.upgrade(alembic_cfg, "head")

    yield

    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
def session_factory():
    """Factory for extra sessions (concurrency tests, background jobs)."""
    return SessionLocal


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session; all rows are wiped after the test."""
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()

    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

    # Restore the rows the migration seeds
    with SessionLocal() as seed_session:
        BookingGuard.ensure_booking_lock(seed_session)
        AvailabilityService.ensure_weekly_availability(seed_session)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()
