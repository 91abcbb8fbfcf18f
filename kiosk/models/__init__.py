"""
SQLAlchemy models for Calendar Kiosk.

All models are imported here for easy access and to ensure
they are registered with the declarative base.
"""

from kiosk.models.base import Base, UTCDateTime
from kiosk.models.user import User
from kiosk.models.calendar import Calendar
from kiosk.models.calendar_event import CalendarEvent
from kiosk.models.sync_status import SyncStatus, SyncState

__all__ = [
    "Base",
    "UTCDateTime",
    "User",
    "Calendar",
    "CalendarEvent",
    "SyncStatus",
    "SyncState",
]
