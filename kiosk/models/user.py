"""
User model for the single Google account shown on the kiosk.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship as orm_relationship

from kiosk.models.base import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from kiosk.models.calendar import Calendar

# Refresh a little before Google actually rejects the token
TOKEN_EXPIRY_SKEW = timedelta(seconds=60)


class User(Base):
    """
    The authenticated Google user.

    Single-tenant: at most one row exists. OAuth tokens are stored
    encrypted; use set_credentials() and get_credentials() to read and
    write them.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Google account ID",
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    picture: Mapped[str | None] = mapped_column(
        String(1000),
    )
    credentials_encrypted: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Fernet encrypted OAuth credentials (access + refresh token)",
    )
    expires_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        comment="Access token expiry",
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
    calendars: Mapped[list["Calendar"]] = orm_relationship(
        "Calendar",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User(email={self.email!r}, expires_at={self.expires_at})>"

    @property
    def is_token_expired(self) -> bool:
        """True when the access token is expired or about to expire."""
        if self.expires_at is None:
            return True
        return utcnow() + TOKEN_EXPIRY_SKEW >= self.expires_at

    def set_credentials(self, credentials: dict[str, Any]) -> None:
        """
        Encrypt and store OAuth credentials.

        Args:
            credentials: Dictionary with token, refresh_token, token_uri,
                scopes and expiry as returned by GoogleAuthService
        """
        from kiosk.services.encryption import get_encryption_service

        service = get_encryption_service()
        self.credentials_encrypted = service.encrypt_json(credentials)

    def get_credentials(self) -> dict[str, Any]:
        """
        Decrypt and return stored OAuth credentials.

        Raises:
            DecryptionError: If credentials cannot be decrypted
        """
        from kiosk.services.encryption import get_encryption_service

        service = get_encryption_service()
        return service.decrypt_json(self.credentials_encrypted)

    def to_public_dict(self) -> dict[str, Any]:
        """Profile fields safe to hand to the browser."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
        }
