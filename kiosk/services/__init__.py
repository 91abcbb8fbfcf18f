"""
Application services for Calendar Kiosk.
"""

from kiosk.services.encryption import EncryptionService, get_encryption_service
from kiosk.services.google_auth import (
    GoogleAuthService,
    GoogleAuthError,
    GoogleAuthConfigError,
    GoogleAuthTokenError,
    get_google_auth_service,
    CALENDAR_SCOPES,
)
from kiosk.services.calendar_service import (
    CalendarService,
    CalendarServiceError,
    CalendarAuthError,
    CalendarAPIError,
    CalendarNotFoundError,
    NotAuthenticatedError,
    SyncResult,
    get_calendar_service,
)

__all__ = [
    # Encryption
    "EncryptionService",
    "get_encryption_service",
    # Google Auth
    "GoogleAuthService",
    "GoogleAuthError",
    "GoogleAuthConfigError",
    "GoogleAuthTokenError",
    "get_google_auth_service",
    "CALENDAR_SCOPES",
    # Calendar
    "CalendarService",
    "CalendarServiceError",
    "CalendarAuthError",
    "CalendarAPIError",
    "CalendarNotFoundError",
    "NotAuthenticatedError",
    "SyncResult",
    "get_calendar_service",
]
