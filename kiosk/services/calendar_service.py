"""
Calendar service for syncing Google Calendar into the local cache.

Handles fetching the calendar list and events from Google, replacing the
cached snapshot, recording sync status, and querying cached events for the
dashboard. Every read is served from the local database so the kiosk keeps
working offline between syncs.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, TypeVar
from zoneinfo import ZoneInfo

from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from kiosk.config import get_settings
from kiosk.models import Calendar, CalendarEvent, SyncState, SyncStatus, User
from kiosk.models.calendar_event import DEFAULT_EVENT_STATUS, DEFAULT_EVENT_TITLE
from kiosk.services.encryption import EncryptionError
from kiosk.services.google_auth import (
    GoogleAuthError,
    GoogleAuthService,
    get_google_auth_service,
)
from kiosk.services.user_service import get_current_user, update_credentials

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Used when the calendar list has never been synced
PRIMARY_CALENDAR_ID = "primary"

# Page size limits: events.list allows 2500, calendarList.list 250
EVENTS_PAGE_SIZE = 1000
CALENDARS_PAGE_SIZE = 250


class CalendarServiceError(Exception):
    """Base exception for Calendar service errors."""
    pass


class NotAuthenticatedError(CalendarServiceError):
    """Raised when no user has signed in."""
    pass


class CalendarAuthError(CalendarServiceError):
    """Raised when Calendar authentication fails."""
    pass


class CalendarAPIError(CalendarServiceError):
    """Raised when Calendar API calls fail."""
    pass


class CalendarNotFoundError(CalendarServiceError):
    """Raised when a calendar id is not in the user's calendar list."""
    pass


@dataclass
class SyncResult:
    """Result of an event sync."""
    success: bool
    events_synced: int = 0
    calendar_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class CalendarService:
    """
    Service for the kiosk's Google Calendar cache.

    Google calls use the stored user's credentials. An expired token is
    refreshed before the call, and a 401 from Google triggers exactly one
    refresh-and-retry.
    """

    def __init__(self, db: Session, auth_service: GoogleAuthService | None = None):
        """Initialize the Calendar service.

        Args:
            db: Database session for the user, calendars, events and sync log
            auth_service: Google auth service; created lazily when omitted
        """
        self.db = db
        self._auth_service = auth_service
        self.settings = get_settings()

    @property
    def auth_service(self) -> GoogleAuthService:
        if self._auth_service is None:
            try:
                self._auth_service = get_google_auth_service()
            except GoogleAuthError as e:
                raise CalendarAuthError(str(e))
        return self._auth_service

    @property
    def local_tz(self) -> ZoneInfo:
        return ZoneInfo(self.settings.timezone)

    # ------------------------------------------------------------------
    # Calendars
    # ------------------------------------------------------------------

    def sync_calendars(self) -> list[Calendar]:
        """
        Refresh the calendar list from Google.

        The stored list ends up matching Google's exactly. Calendars that
        survive keep their selection flag and cached events; calendars that
        disappeared are removed together with their events.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            CalendarAuthError: If the token cannot be refreshed
            CalendarAPIError: If the Google call fails
        """
        user = self._require_user()

        items = self._call_google(
            user,
            lambda client: self._list_all(client.calendarList(), {}, CALENDARS_PAGE_SIZE),
        )

        existing = {
            calendar.id: calendar
            for calendar in self.db.query(Calendar).filter_by(user_id=user.id)
        }
        seen: set[str] = set()

        for item in items:
            calendar_id = item.get("id")
            if not calendar_id or calendar_id in seen:
                continue
            seen.add(calendar_id)

            calendar = existing.get(calendar_id)
            if calendar is None:
                calendar = Calendar(id=calendar_id, user_id=user.id, is_selected=False)
                self.db.add(calendar)
            calendar.summary = item.get("summary") or "Untitled Calendar"
            calendar.description = item.get("description")
            calendar.is_primary = bool(item.get("primary", False))
            calendar.access_role = item.get("accessRole") or "reader"

        for calendar_id, calendar in existing.items():
            if calendar_id not in seen:
                self.db.delete(calendar)

        self.db.commit()

        logger.info(f"Synced {len(items)} calendars for {user.email}")
        return self.list_calendars()

    def list_calendars(self) -> list[Calendar]:
        """Stored calendars, primary first then by name."""
        user = self._require_user()
        return (
            self.db.query(Calendar)
            .filter_by(user_id=user.id)
            .order_by(Calendar.is_primary.desc(), Calendar.summary)
            .all()
        )

    def select_calendar(self, calendar_id: str) -> Calendar:
        """
        Mark a calendar as the one to sync and display.

        Raises:
            CalendarNotFoundError: If the calendar is not in the stored list
        """
        user = self._require_user()
        calendar = self.db.query(Calendar).filter_by(id=calendar_id, user_id=user.id).first()
        if calendar is None:
            raise CalendarNotFoundError(f"Calendar not found: {calendar_id}")

        self.db.query(Calendar).filter_by(user_id=user.id).update(
            {Calendar.is_selected: False},
            synchronize_session=False,
        )
        calendar.is_selected = True
        self.db.commit()
        self.db.refresh(calendar)

        logger.info(f"Selected calendar {calendar.summary!r}")
        return calendar

    def get_selected_calendar(self) -> Calendar | None:
        user = get_current_user(self.db)
        if user is None:
            return None
        return self.db.query(Calendar).filter_by(user_id=user.id, is_selected=True).first()

    def _display_calendar(self) -> Calendar | None:
        """Selected calendar, else the primary one."""
        selected = self.get_selected_calendar()
        if selected is not None:
            return selected
        return self.db.query(Calendar).filter_by(is_primary=True).first()

    def resolve_sync_calendar_id(self) -> str:
        """Calendar the next event sync should pull from."""
        calendar = self._display_calendar()
        if calendar is not None:
            return calendar.id
        return PRIMARY_CALENDAR_ID

    # ------------------------------------------------------------------
    # Event sync
    # ------------------------------------------------------------------

    def sync_events(self) -> SyncResult:
        """
        Pull the sync window from Google and replace the cached events.

        Never raises for sync failures: the error is logged, recorded as an
        error SyncStatus row, and returned in the result.
        """
        SyncStatus.record(self.db, SyncState.in_progress)
        logger.info("Starting calendar sync...")

        calendar_id: str | None = None
        try:
            user = self._require_user()
            calendar_id = self._ensure_calendar_row(user)

            time_min = datetime.now(timezone.utc)
            time_max = time_min + timedelta(days=self.settings.max_events_days)
            logger.info(f"Fetching events for {calendar_id} from {time_min.isoformat()} to {time_max.isoformat()}")

            items = self._call_google(
                user,
                lambda client: self._list_all(
                    client.events(),
                    {
                        "calendarId": calendar_id,
                        "timeMin": time_min.isoformat(),
                        "timeMax": time_max.isoformat(),
                        "singleEvents": True,
                        "orderBy": "startTime",
                    },
                ),
            )

            events = [
                event
                for event in (self._convert_event(calendar_id, item) for item in items)
                if event is not None
            ]
            self._replace_events(calendar_id, events)

        except CalendarServiceError as e:
            logger.error(f"Calendar sync failed: {e}")
            return self._record_failure(str(e), calendar_id)
        except Exception as e:
            logger.exception("Calendar sync failed unexpectedly")
            return self._record_failure(str(e) or e.__class__.__name__, calendar_id)

        SyncStatus.record(
            self.db,
            SyncState.success,
            events_synced=len(events),
            calendar_id=calendar_id,
        )
        logger.info(f"Calendar sync completed successfully. Synced {len(events)} events.")
        return SyncResult(success=True, events_synced=len(events), calendar_id=calendar_id)

    def _record_failure(self, message: str, calendar_id: str | None) -> SyncResult:
        self.db.rollback()
        SyncStatus.record(
            self.db,
            SyncState.error,
            error_message=message,
            calendar_id=calendar_id,
        )
        return SyncResult(success=False, calendar_id=calendar_id, error=message)

    def _ensure_calendar_row(self, user: User) -> str:
        """
        Id of the calendar to sync, making sure a Calendar row exists.

        Before the calendar list has ever been fetched, events go under a
        placeholder row for Google's "primary" alias.
        """
        calendar_id = self.resolve_sync_calendar_id()
        if calendar_id == PRIMARY_CALENDAR_ID:
            existing = self.db.query(Calendar).filter_by(id=PRIMARY_CALENDAR_ID).first()
            if existing is None:
                self.db.add(Calendar(
                    id=PRIMARY_CALENDAR_ID,
                    user_id=user.id,
                    summary=user.email,
                    is_primary=True,
                    access_role="owner",
                ))
                self.db.commit()
        return calendar_id

    def _replace_events(self, calendar_id: str, events: list[CalendarEvent]) -> None:
        """Delete every cached event for the calendar, then insert the new set."""
        deleted = (
            self.db.query(CalendarEvent)
            .filter_by(calendar_id=calendar_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        self.db.add_all(events)
        self.db.commit()
        logger.debug(f"Replaced {deleted} cached events with {len(events)} for {calendar_id}")

    def _convert_event(self, calendar_id: str, event_data: dict[str, Any]) -> CalendarEvent | None:
        """Map a Google event resource onto a CalendarEvent row."""
        google_event_id = event_data.get("id")
        if not google_event_id:
            return None

        start = event_data.get("start") or {}
        end = event_data.get("end") or {}
        is_all_day = "dateTime" not in start

        start_time = self._parse_event_time(start)
        end_time = self._parse_event_time(end)
        if start_time is None or end_time is None:
            logger.warning(f"Skipping event {google_event_id} with unparseable times")
            return None

        return CalendarEvent(
            calendar_id=calendar_id,
            google_event_id=google_event_id,
            title=event_data.get("summary") or DEFAULT_EVENT_TITLE,
            description=event_data.get("description"),
            start_time=start_time,
            end_time=end_time,
            location=event_data.get("location"),
            is_all_day=is_all_day,
            status=event_data.get("status") or DEFAULT_EVENT_STATUS,
            html_link=event_data.get("htmlLink"),
            sync_timestamp=datetime.now(timezone.utc),
        )

    def _parse_event_time(self, time_data: dict[str, str]) -> datetime | None:
        """Parse event start/end time from Google Calendar API response."""
        if "dateTime" in time_data:
            # Regular event with specific time
            try:
                parsed = datetime.fromisoformat(time_data["dateTime"].replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        elif "date" in time_data:
            # All-day event: midnight in the kiosk's timezone
            try:
                day = date.fromisoformat(time_data["date"])
            except ValueError:
                return None
            return datetime.combine(day, time.min, tzinfo=self.local_tz).astimezone(timezone.utc)
        return None

    # ------------------------------------------------------------------
    # Cached reads
    # ------------------------------------------------------------------

    def get_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """
        Cached events overlapping [start, end] for the display calendar.

        With no calendars known at all, every cached event in the range is
        returned.
        """
        query = (
            self.db.query(CalendarEvent)
            .filter(CalendarEvent.start_time <= end)
            .filter(CalendarEvent.end_time >= start)
        )

        calendar = self._display_calendar()
        if calendar is not None:
            query = query.filter(CalendarEvent.calendar_id == calendar.id)

        return query.order_by(CalendarEvent.start_time, CalendarEvent.id).all()

    def get_all_events(self) -> list[CalendarEvent]:
        return (
            self.db.query(CalendarEvent)
            .order_by(CalendarEvent.start_time, CalendarEvent.id)
            .all()
        )

    def get_last_sync_status(self) -> SyncStatus | None:
        return SyncStatus.latest(self.db)

    # ------------------------------------------------------------------
    # Google access
    # ------------------------------------------------------------------

    def _require_user(self) -> User:
        user = get_current_user(self.db)
        if user is None:
            raise NotAuthenticatedError("No authenticated user found")
        return user

    def _credentials(self, user: User, force_refresh: bool = False) -> dict[str, Any]:
        """Stored credentials, refreshed first when expired (or when forced)."""
        try:
            credentials = user.get_credentials()
        except EncryptionError as e:
            raise CalendarAuthError(f"Failed to get credentials: {e}")

        if force_refresh or user.is_token_expired:
            logger.info("Access token expired, refreshing...")
            try:
                credentials = self.auth_service.refresh_credentials(credentials)
            except GoogleAuthError as e:
                raise CalendarAuthError(str(e))
            update_credentials(self.db, user, credentials)

        return credentials

    def _call_google(self, user: User, operation: Callable[[Any], T]) -> T:
        """
        Run a Calendar API operation for the user.

        A 401 response refreshes the token once and retries; any other
        failure, or a second 401, is raised as CalendarAPIError.
        """
        credentials = self._credentials(user)
        try:
            return operation(self.auth_service.build_calendar_client(credentials))
        except HttpError as e:
            if e.resp.status != 401:
                raise CalendarAPIError(f"Calendar API error: {e}")
            logger.warning("Google rejected the access token, refreshing and retrying once")

        credentials = self._credentials(user, force_refresh=True)
        try:
            return operation(self.auth_service.build_calendar_client(credentials))
        except HttpError as e:
            raise CalendarAPIError(f"Calendar API error: {e}")

    @staticmethod
    def _list_all(
        resource,
        params: dict[str, Any],
        page_size: int = EVENTS_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """Follow nextPageToken through every page of a list call."""
        items: list[dict[str, Any]] = []
        page_token = None
        while True:
            result = resource.list(
                maxResults=page_size,
                pageToken=page_token,
                **params,
            ).execute()
            items.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break
        return items


def get_calendar_service(db: Session) -> CalendarService:
    """Get a Calendar service instance.

    Args:
        db: Database session

    Returns:
        CalendarService instance
    """
    return CalendarService(db)
