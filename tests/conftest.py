"""
Pytest configuration and fixtures for Calendar Kiosk tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kiosk.config import get_settings
from kiosk.database import enable_sqlite_foreign_keys, get_db
from kiosk.models import Base, Calendar, CalendarEvent, User
from kiosk.services.encryption import get_encryption_service

# Valid Fernet key used only by the test suite
TEST_ENCRYPTION_KEY = "izZY7IUIzei-kSYNOCgiIpwOSv9_hioCMBrs2mD9drs="

TEST_USER_INFO = {
    "id": "google-user-1",
    "email": "kiosk@example.com",
    "name": "Kiosk Owner",
    "picture": "https://example.com/avatar.png",
}

TEST_CREDENTIALS = {
    "token": "test-access-token",
    "refresh_token": "test-refresh-token",
    "token_uri": "https://oauth2.googleapis.com/token",
    "client_id": "test-client-id.apps.googleusercontent.com",
    "client_secret": "GOCSPX-test-secret",
    "scopes": ["https://www.googleapis.com/auth/calendar.readonly"],
    "expiry": "2099-01-01T00:00:00",
}


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Configure OAuth, encryption and sync settings for every test."""
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "GOCSPX-test-secret")
    monkeypatch.setenv("GOOGLE_REDIRECT_URI", "http://localhost:3001/api/auth/callback")
    monkeypatch.setenv("SYNC_ENABLED", "false")
    monkeypatch.setenv("TIMEZONE", "UTC")

    get_settings.cache_clear()
    get_encryption_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_encryption_service.cache_clear()


@pytest.fixture
def engine():
    """In-memory SQLite database shared by every connection in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Session:
    """Provide a database session for tests."""
    session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(db_session):
    """Create a test client that uses the test database session."""
    from kiosk.main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(db_session) -> User:
    """The stored kiosk user with valid (not expired) credentials."""
    user = User(
        id=TEST_USER_INFO["id"],
        email=TEST_USER_INFO["email"],
        name=TEST_USER_INFO["name"],
        picture=TEST_USER_INFO["picture"],
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    user.set_credentials(TEST_CREDENTIALS)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def calendar(db_session, user) -> Calendar:
    """The user's primary calendar."""
    calendar = Calendar(
        id="kiosk@example.com",
        user_id=user.id,
        summary="Kiosk Owner",
        is_primary=True,
        access_role="owner",
    )
    db_session.add(calendar)
    db_session.commit()
    return calendar


def make_event(calendar_id: str, google_event_id: str, start: datetime, hours: float = 1, **kwargs) -> CalendarEvent:
    """Build a cached event starting at `start`."""
    return CalendarEvent(
        calendar_id=calendar_id,
        google_event_id=google_event_id,
        title=kwargs.pop("title", f"Event {google_event_id}"),
        start_time=start,
        end_time=start + timedelta(hours=hours),
        **kwargs,
    )


@pytest.fixture
def events(db_session, calendar) -> list[CalendarEvent]:
    """Three cached events on 2030-06-10/11 (UTC)."""
    items = [
        make_event(calendar.id, "evt-1", datetime(2030, 6, 10, 9, tzinfo=timezone.utc), title="Standup"),
        make_event(calendar.id, "evt-2", datetime(2030, 6, 10, 14, tzinfo=timezone.utc), hours=2, title="Review"),
        make_event(calendar.id, "evt-3", datetime(2030, 6, 11, 10, tzinfo=timezone.utc), title="Dentist"),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


def login(client: TestClient, user_info: dict | None = None, credentials: dict | None = None) -> MagicMock:
    """
    Sign the test client in through the real login and callback routes.

    Google is replaced by a mock auth service; returns that mock.
    """
    auth_service = MagicMock()
    auth_service.get_authorization_url.side_effect = lambda state: (
        f"https://accounts.google.com/o/oauth2/auth?state={state}",
        state,
    )
    auth_service.exchange_code.return_value = credentials or TEST_CREDENTIALS
    auth_service.get_user_info.return_value = user_info or TEST_USER_INFO

    with patch("kiosk.routers.auth.get_google_auth_service", return_value=auth_service):
        response = client.get("/api/auth/login", follow_redirects=False)
        state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]
        response = client.get(
            "/api/auth/callback",
            params={"code": "test-code", "state": state},
            follow_redirects=False,
        )

    assert response.headers["location"] == "/?auth=success"
    return auth_service


@pytest.fixture
def authenticated_client(client, user):
    """Test client whose session is signed in as the stored user."""
    login(client)
    return client
