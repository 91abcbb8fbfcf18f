"""
Shared router dependencies: session-based authentication.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from kiosk.database import get_db
from kiosk.models import User
from kiosk.services.user_service import get_user

SESSION_USER_KEY = "user_id"
SESSION_STATE_KEY = "oauth_state"


def get_session_user(request: Request, db: Session) -> User | None:
    """
    User bound to the request's session cookie.

    A session whose user no longer exists (logged out elsewhere, replaced by
    another account) is cleared.
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None

    user = get_user(db, user_id)
    if user is None:
        request.session.pop(SESSION_USER_KEY, None)
    return user


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency for routes that need a signed-in user."""
    user = get_session_user(request, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user
