"""
SyncStatus model: append-only log of calendar sync runs.
"""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, Session, mapped_column

from kiosk.models.base import Base, UTCDateTime, utcnow


class SyncState(str, enum.Enum):
    """Outcome of a sync run."""

    success = "success"
    error = "error"
    in_progress = "in_progress"


class SyncStatus(Base):
    """
    One row per sync state change.

    A sync appends an in_progress row when it starts and a success or
    error row when it finishes. Only the most recent row is displayed.
    """

    __tablename__ = "sync_status"
    __table_args__ = (
        Index("idx_sync_status_timestamp", "last_sync"),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    last_sync: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
    )
    status: Mapped[SyncState] = mapped_column(
        Enum(SyncState, name="sync_state", native_enum=False, validate_strings=True),
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
    )
    events_synced: Mapped[int] = mapped_column(
        Integer,
        default=0,
    )
    calendar_id: Mapped[str | None] = mapped_column(
        String(255),
        comment="Calendar the sync ran against",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
    )

    def __repr__(self) -> str:
        return f"<SyncStatus(status={self.status.value}, last_sync={self.last_sync})>"

    @classmethod
    def record(
        cls,
        db: Session,
        status: SyncState,
        events_synced: int = 0,
        error_message: str | None = None,
        calendar_id: str | None = None,
    ) -> "SyncStatus":
        """Append a status row and commit it so readers see it immediately."""
        row = cls(
            last_sync=utcnow(),
            status=status,
            events_synced=events_synced,
            error_message=error_message,
            calendar_id=calendar_id,
        )
        db.add(row)
        db.commit()
        return row

    @classmethod
    def latest(cls, db: Session) -> "SyncStatus | None":
        """Most recent status row, or None if no sync has run."""
        return (
            db.query(cls)
            .order_by(cls.last_sync.desc(), cls.id.desc())
            .first()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "status": self.status.value,
            "error_message": self.error_message,
            "events_synced": self.events_synced or 0,
            "calendar_id": self.calendar_id,
        }
