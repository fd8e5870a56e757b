# tests/api/conftest.py
import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from school_attendance.backend.main import app
from school_attendance.backend.api import dependencies
from school_attendance.backend.api.auth import get_current_user
from school_attendance.backend.api.schemas.user import SessionUser
from school_attendance.backend.api.utilities.limiter import limiter


@pytest.fixture(autouse=True)
def no_rate_limits():
    """Rate limit counters would leak between tests through the shared in-memory storage."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def client():
    # No 'with' block: the lifespan (database, Redis, scheduler) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def services():
    """Replaces every service factory with an AsyncMock."""
    mocks = {
        "user": AsyncMock(),
        "attendance": AsyncMock(),
        "teacher": AsyncMock(),
        "roster": AsyncMock(),
    }
    app.dependency_overrides[dependencies.get_user_service] = lambda: mocks["user"]
    app.dependency_overrides[dependencies.get_attendance_service] = lambda: mocks["attendance"]
    app.dependency_overrides[dependencies.get_teacher_service] = lambda: mocks["teacher"]
    app.dependency_overrides[dependencies.get_roster_service] = lambda: mocks["roster"]
    return mocks


@pytest.fixture
def sign_in_as():
    """Makes requests run as the given role without a token or Redis session."""
    def _sign_in(role: str, user_id=None) -> SessionUser:
        user = SessionUser(id=str(user_id or ("admin" if role == "admin" else uuid.uuid4())), role=role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _sign_in
