"""
Storage of the single kiosk user and their OAuth tokens.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from kiosk.models import User

logger = logging.getLogger(__name__)

# Google access tokens live for an hour when no expiry is reported
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


def credentials_expiry(credentials: dict[str, Any]) -> datetime:
    """
    Expiry of a credential dictionary as an aware UTC datetime.

    google-auth reports expiry as naive UTC; a missing or unparseable
    expiry falls back to one hour from now.
    """
    raw = credentials.get("expiry")
    if raw:
        try:
            expiry = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable token expiry {raw!r}, assuming one hour")
        else:
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
            return expiry.astimezone(timezone.utc)
    return datetime.now(timezone.utc) + DEFAULT_TOKEN_LIFETIME


def get_current_user(db: Session) -> User | None:
    """The kiosk's user, or None when nobody has signed in."""
    return db.query(User).order_by(User.updated_at.desc()).first()


def get_user(db: Session, user_id: str) -> User | None:
    return db.query(User).filter_by(id=user_id).first()


def save_user(
    db: Session,
    user_info: dict[str, Any],
    credentials: dict[str, Any],
) -> User:
    """
    Store the signed-in user, replacing whoever was there before.

    Signing in again as the same Google account updates the row in place
    and keeps its calendars. A different account replaces the old user
    together with its calendars and events.
    """
    user_id = user_info["id"]

    for other in db.query(User).filter(User.id != user_id).all():
        logger.info(f"Replacing previous kiosk user {other.email}")
        db.delete(other)
    db.flush()

    user = get_user(db, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)

    user.email = user_info["email"]
    user.name = user_info.get("name") or user_info["email"]
    user.picture = user_info.get("picture")
    user.set_credentials(credentials)
    user.expires_at = credentials_expiry(credentials)

    db.commit()
    db.refresh(user)
    return user


def update_credentials(db: Session, user: User, credentials: dict[str, Any]) -> User:
    """Persist refreshed OAuth tokens for the user."""
    user.set_credentials(credentials)
    user.expires_at = credentials_expiry(credentials)
    db.commit()
    return user


def delete_user(db: Session) -> int:
    """Remove every stored user (and, by cascade, their cached data)."""
    users = db.query(User).all()
    for user in users:
        db.delete(user)
    db.commit()
    return len(users)
