"""
Fixtures for API integration tests.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from core.database import get_db
from main import app
from services.notification_service import get_notifier


@pytest.fixture
def client(db_session, notifier) -> Generator[TestClient, None, None]:
    """Test client sharing the test session and recording notifications."""
    def override_get_db() -> Generator[Session, None, None]:
        # Don't close the session as it's managed by the test fixture
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        # Not used as a context manager so the lifespan (bootstrap, scheduler) does not run
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
