"""
Google OAuth service for signing the kiosk user in.

Handles the authorization-code flow, token refresh, and building
authorized Calendar API clients.
"""

import logging
from typing import Any

import requests
from google.oauth2.credentials import Credentials
from google.auth.exceptions import GoogleAuthError as GoogleLibraryAuthError
from google.auth.transport.requests import Request
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from kiosk.config import get_settings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"

# Read-only calendar access plus the profile shown in the kiosk header
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/calendar.readonly",
]


class GoogleAuthError(Exception):
    """Base exception for Google Auth errors."""

    pass


class GoogleAuthConfigError(GoogleAuthError):
    """Raised when Google OAuth is not configured."""

    pass


class GoogleAuthTokenError(GoogleAuthError):
    """Raised when token operations fail."""

    pass


class GoogleAuthService:
    """
    Service for managing Google OAuth authentication.

    Handles:
    - OAuth authorization URL generation
    - Callback processing and token exchange
    - Token refresh and revocation
    - Authorized API client construction
    """

    def __init__(self):
        self.settings = get_settings()

        if not self.settings.google_oauth_configured:
            raise GoogleAuthConfigError(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI in .env"
            )

        self._client_config = {
            "web": {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.settings.google_redirect_uri],
            }
        }

    def _flow(self) -> Flow:
        return Flow.from_client_config(
            self._client_config,
            scopes=CALENDAR_SCOPES,
            redirect_uri=self.settings.google_redirect_uri,
        )

    def get_authorization_url(self, state: str | None = None) -> tuple[str, str]:
        """
        Generate the Google OAuth authorization URL.

        Args:
            state: CSRF token echoed back to the callback

        Returns:
            Tuple of (authorization_url, state)
        """
        authorization_url, state = self._flow().authorization_url(
            access_type="offline",  # Get refresh token
            prompt="consent",  # Google only issues a refresh token on consent
            state=state,
        )
        return authorization_url, state

    def exchange_code(self, code: str) -> dict[str, Any]:
        """
        Exchange authorization code for tokens.

        Returns:
            Credential dictionary (see credentials_to_dict)

        Raises:
            GoogleAuthTokenError: If code exchange fails
        """
        try:
            flow = self._flow()
            flow.fetch_token(code=code)
            return self.credentials_to_dict(flow.credentials)
        except Exception as e:
            raise GoogleAuthTokenError(f"Failed to exchange authorization code: {e}")

    def get_user_info(self, credentials_dict: dict[str, Any]) -> dict[str, Any]:
        """
        Get the Google profile (id, email, name, picture).

        Raises:
            GoogleAuthTokenError: If fetching user info fails
        """
        try:
            credentials = self._dict_to_credentials(credentials_dict)
            service = build("oauth2", "v2", credentials=credentials, cache_discovery=False)
            info = service.userinfo().get().execute()
        except Exception as e:
            raise GoogleAuthTokenError(f"Failed to get user info: {e}")

        return {
            "id": info.get("id"),
            "email": info.get("email"),
            "name": info.get("name") or info.get("email") or "",
            "picture": info.get("picture"),
        }

    def refresh_credentials(self, credentials_dict: dict[str, Any]) -> dict[str, Any]:
        """
        Refresh an expired access token.

        Returns:
            Updated credential dictionary. The refresh token is carried over
            when Google does not rotate it.

        Raises:
            GoogleAuthTokenError: If there is no refresh token or refresh fails
        """
        if not credentials_dict.get("refresh_token"):
            raise GoogleAuthTokenError("No refresh token available")

        credentials = self._dict_to_credentials(credentials_dict)
        try:
            credentials.refresh(Request())
        except GoogleLibraryAuthError as e:
            raise GoogleAuthTokenError(f"Failed to refresh credentials: {e}")

        logger.info("Refreshed Google access token")
        refreshed = self.credentials_to_dict(credentials)
        if not refreshed.get("refresh_token"):
            refreshed["refresh_token"] = credentials_dict["refresh_token"]
        return refreshed

    def revoke_credentials(self, credentials_dict: dict[str, Any]) -> bool:
        """
        Revoke OAuth credentials at Google. Best effort.

        Returns:
            True if revocation succeeded
        """
        token = credentials_dict.get("token") or credentials_dict.get("refresh_token")
        if not token:
            return False

        try:
            response = requests.post(
                REVOKE_URI,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=10,
            )
        except requests.RequestException as e:
            logger.warning(f"Token revocation failed: {e}")
            return False
        return response.status_code == 200

    def build_calendar_client(self, credentials_dict: dict[str, Any]):
        """Calendar v3 API resource authorized with the given credentials."""
        credentials = self._dict_to_credentials(credentials_dict)
        return build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def _dict_to_credentials(self, credentials_dict: dict[str, Any]) -> Credentials:
        """Convert credential dictionary to google.oauth2.credentials.Credentials object."""
        return Credentials(
            token=credentials_dict.get("token"),
            refresh_token=credentials_dict.get("refresh_token"),
            token_uri=credentials_dict.get("token_uri") or TOKEN_URI,
            client_id=credentials_dict.get("client_id") or self.settings.google_client_id,
            client_secret=credentials_dict.get("client_secret") or self.settings.google_client_secret,
            scopes=credentials_dict.get("scopes") or CALENDAR_SCOPES,
        )

    @staticmethod
    def credentials_to_dict(credentials: Credentials) -> dict[str, Any]:
        """Convert google.oauth2.credentials.Credentials object to dictionary."""
        return {
            "token": credentials.token,
            "refresh_token": credentials.refresh_token,
            "token_uri": credentials.token_uri,
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "scopes": list(credentials.scopes) if credentials.scopes else [],
            "expiry": credentials.expiry.isoformat() if credentials.expiry else None,
        }


def get_google_auth_service() -> GoogleAuthService:
    """
    Get a Google Auth service instance.

    Raises:
        GoogleAuthConfigError: If Google OAuth is not configured
    """
    return GoogleAuthService()
