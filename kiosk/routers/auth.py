"""
Google OAuth authentication routes for Calendar Kiosk.

Handles signing the kiosk user in and out and reporting session state.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from kiosk.database import get_db
from kiosk.routers.deps import SESSION_STATE_KEY, SESSION_USER_KEY, get_session_user
from kiosk.services.encryption import EncryptionError
from kiosk.services.google_auth import (
    GoogleAuthConfigError,
    GoogleAuthError,
    get_google_auth_service,
)
from kiosk.services.user_service import delete_user, get_current_user, save_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _redirect_home(**params: str) -> RedirectResponse:
    query = "&".join(f"{key}={value}" for key, value in params.items())
    return RedirectResponse(url=f"/?{query}" if query else "/", status_code=302)


@router.get("/login")
async def login(request: Request):
    """
    Initiate Google OAuth flow.

    Stores a CSRF state in the session and redirects to the consent screen.
    """
    try:
        auth_service = get_google_auth_service()
    except GoogleAuthConfigError as e:
        raise HTTPException(
            status_code=503,
            detail=f"Google OAuth not configured: {e}",
        )

    state = secrets.token_urlsafe(32)
    request.session[SESSION_STATE_KEY] = state

    authorization_url, _ = auth_service.get_authorization_url(state=state)
    return RedirectResponse(url=authorization_url, status_code=302)


@router.get("/callback")
def oauth_callback(
    request: Request,
    code: str | None = Query(None, description="Authorization code from Google"),
    state: str | None = Query(None, description="State parameter for CSRF protection"),
    error: str | None = Query(None, description="Error from Google if auth failed"),
    db: Session = Depends(get_db),
):
    """
    Handle Google OAuth callback.

    Exchanges the code for tokens, stores the user and signs the session in.
    Always redirects back to the dashboard with an outcome flag.
    """
    expected_state = request.session.pop(SESSION_STATE_KEY, None)

    if error:
        logger.error(f"OAuth error from Google: {error}")
        return _redirect_home(error="oauth_error")

    if not code:
        return _redirect_home(error="missing_code")

    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("OAuth callback with invalid or expired state")
        return _redirect_home(error="invalid_state")

    try:
        auth_service = get_google_auth_service()
        credentials = auth_service.exchange_code(code)
        if not credentials.get("token"):
            raise GoogleAuthError("No access token received")

        user_info = auth_service.get_user_info(credentials)
        if not user_info.get("id") or not user_info.get("email"):
            raise GoogleAuthError("Could not retrieve profile from Google account")

        user = save_user(db, user_info, credentials)
    except (GoogleAuthError, EncryptionError) as e:
        db.rollback()
        logger.error(f"Auth callback error: {e}")
        return _redirect_home(error="auth_failed")

    request.session[SESSION_USER_KEY] = user.id
    logger.info(f"User authenticated successfully: {user.email}")
    return _redirect_home(auth="success")


@router.get("/status")
def auth_status(request: Request, db: Session = Depends(get_db)):
    """Report whether the session is signed in, with the user's profile."""
    user = get_session_user(request, db)
    if user is None:
        return {"authenticated": False}

    return {
        "authenticated": True,
        "user": user.to_public_dict(),
    }


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    """
    Sign out: revoke tokens at Google, forget the user, clear the session.

    Revocation is best effort; the local user is removed regardless.
    """
    user = get_current_user(db)
    if user is not None:
        try:
            get_google_auth_service().revoke_credentials(user.get_credentials())
        except (GoogleAuthError, EncryptionError) as e:
            logger.warning(f"Could not revoke tokens for {user.email}: {e}")
        logger.info(f"Logging out {user.email}")

    delete_user(db)
    request.session.clear()
    return {"success": True}
