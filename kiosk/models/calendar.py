"""
Calendar model for the Google calendars visible to the user.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship as orm_relationship

from kiosk.models.base import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from kiosk.models.calendar_event import CalendarEvent
    from kiosk.models.user import User


class Calendar(Base):
    """
    A Google calendar from the user's calendar list.

    The list is replaced wholesale on every calendar sync. One calendar may
    be marked as selected; it is the one the kiosk syncs and displays.
    """

    __tablename__ = "calendars"
    __table_args__ = (
        Index("idx_calendars_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Google calendar ID",
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    summary: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Calendar display name",
    )
    description: Mapped[str | None] = mapped_column(
        Text,
    )
    is_primary: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
    )
    access_role: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="reader",
        comment="owner, writer, reader or freeBusyReader",
    )
    is_selected: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
    )

    # Relationships
    user: Mapped["User"] = orm_relationship(
        "User",
        back_populates="calendars",
    )
    events: Mapped[list["CalendarEvent"]] = orm_relationship(
        "CalendarEvent",
        back_populates="calendar",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Calendar(summary={self.summary!r}, primary={self.is_primary})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "summary": self.summary,
            "description": self.description,
            "primary": bool(self.is_primary),
            "access_role": self.access_role,
            "is_selected": bool(self.is_selected),
        }
