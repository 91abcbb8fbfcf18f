"""
Tests for the ORM models: timestamps, cascades and serialization.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from kiosk.models import Calendar, CalendarEvent, SyncState, SyncStatus, User
from tests.conftest import TEST_CREDENTIALS, make_event


class TestUTCDateTime:
    """Test timezone handling of stored datetimes."""

    def test_aware_values_come_back_in_utc(self, db_session, calendar):
        berlin = timezone(timedelta(hours=2))
        event = make_event(calendar.id, "tz-1", datetime(2030, 6, 10, 11, tzinfo=berlin))
        db_session.add(event)
        db_session.commit()
        db_session.expire_all()

        stored = db_session.get(CalendarEvent, event.id)
        assert stored.start_time == datetime(2030, 6, 10, 9, tzinfo=timezone.utc)
        assert stored.start_time.tzinfo is not None


class TestUser:
    """Test the User model."""

    def test_credentials_are_encrypted(self, user):
        assert "test-access-token" not in user.credentials_encrypted
        assert user.get_credentials() == TEST_CREDENTIALS

    def test_is_token_expired(self, user):
        assert user.is_token_expired is False

        user.expires_at = datetime.now(timezone.utc) + timedelta(seconds=30)
        assert user.is_token_expired is True

    def test_public_dict_has_no_tokens(self, user):
        assert set(user.to_public_dict()) == {"id", "email", "name", "picture"}

    def test_deleting_user_cascades(self, db_session, events):
        """Test that removing the user removes calendars and events."""
        db_session.delete(db_session.get(User, "google-user-1"))
        db_session.commit()

        assert db_session.query(Calendar).count() == 0
        assert db_session.query(CalendarEvent).count() == 0


class TestCalendarEvent:
    """Test the CalendarEvent model."""

    def test_unique_google_event_per_calendar(self, db_session, events, calendar):
        db_session.add(make_event(calendar.id, "evt-1", datetime(2030, 7, 1, tzinfo=timezone.utc)))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_defaults(self, db_session, calendar):
        event = CalendarEvent(
            calendar_id=calendar.id,
            google_event_id="bare",
            start_time=datetime(2030, 1, 1, tzinfo=timezone.utc),
            end_time=datetime(2030, 1, 1, 1, tzinfo=timezone.utc),
        )
        db_session.add(event)
        db_session.commit()

        assert event.title == "No Title"
        assert event.status == "confirmed"
        assert event.is_all_day is False

    def test_duration_and_to_dict(self, events):
        review = events[1]

        assert review.duration_minutes == 120
        data = review.to_dict()
        assert data["title"] == "Review"
        assert data["start_time"] == "2030-06-10T14:00:00+00:00"
        assert data["is_all_day"] is False


class TestSyncStatus:
    """Test the sync status log."""

    def test_latest_returns_most_recent(self, db_session):
        assert SyncStatus.latest(db_session) is None

        SyncStatus.record(db_session, SyncState.in_progress)
        SyncStatus.record(db_session, SyncState.success, events_synced=4, calendar_id="primary")

        latest = SyncStatus.latest(db_session)
        assert latest.status == SyncState.success
        assert latest.to_dict()["events_synced"] == 4
        assert latest.to_dict()["status"] == "success"
