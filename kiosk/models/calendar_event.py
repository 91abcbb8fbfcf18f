"""
CalendarEvent model for storing synced Google Calendar events.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    String,
    Text,
    Boolean,
    Integer,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship as orm_relationship

from kiosk.models.base import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from kiosk.models.calendar import Calendar

DEFAULT_EVENT_TITLE = "No Title"
DEFAULT_EVENT_STATUS = "confirmed"


class CalendarEvent(Base):
    """
    Cached calendar event data from Google Calendar API.

    The rows for a calendar are always the full snapshot of the last
    successful sync window; a sync deletes them all and inserts the fresh
    set rather than merging.
    """

    __tablename__ = "calendar_events"
    __table_args__ = (
        UniqueConstraint(
            "calendar_id", "google_event_id",
            name="uq_calendar_events_calendar_event"
        ),
        Index("idx_events_start_time", "start_time"),
        Index("idx_events_end_time", "end_time"),
        Index("idx_events_time_range", "start_time", "end_time"),
        Index("idx_events_calendar", "calendar_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    calendar_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("calendars.id", ondelete="CASCADE"),
        nullable=False,
    )
    google_event_id: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Google Calendar event ID",
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default=DEFAULT_EVENT_TITLE,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
    )
    start_time: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
    )
    location: Mapped[str | None] = mapped_column(
        String(500),
    )
    is_all_day: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DEFAULT_EVENT_STATUS,
        comment="confirmed, tentative or cancelled",
    )
    html_link: Mapped[str | None] = mapped_column(
        String(1000),
        comment="Direct link to view event in Google Calendar",
    )
    sync_timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
    )

    # Relationships
    calendar: Mapped["Calendar"] = orm_relationship(
        "Calendar",
        back_populates="events",
    )

    def __repr__(self) -> str:
        return f"<CalendarEvent(title={self.title!r}, start={self.start_time})>"

    @property
    def duration_minutes(self) -> int:
        """Get the duration of the event in minutes."""
        if self.start_time and self.end_time:
            delta = self.end_time - self.start_time
            return int(delta.total_seconds() / 60)
        return 0

    @property
    def is_past(self) -> bool:
        """Check if the event has already ended."""
        if self.end_time is None:
            return False
        return datetime.now(timezone.utc) > self.end_time

    @property
    def is_happening_now(self) -> bool:
        """Check if the event is currently happening."""
        if self.start_time is None or self.end_time is None:
            return False
        now = datetime.now(timezone.utc)
        return self.start_time <= now <= self.end_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "calendar_id": self.calendar_id,
            "google_event_id": self.google_event_id,
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "location": self.location,
            "is_all_day": bool(self.is_all_day),
            "status": self.status,
            "html_link": self.html_link,
            "sync_timestamp": self.sync_timestamp.isoformat() if self.sync_timestamp else None,
        }
