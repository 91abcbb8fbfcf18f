"""
Tests for Google Auth service.

These tests use mocking to avoid requiring actual Google credentials.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests
from google.auth.exceptions import RefreshError

from kiosk.services.google_auth import (
    CALENDAR_SCOPES,
    GoogleAuthConfigError,
    GoogleAuthService,
    GoogleAuthTokenError,
    get_google_auth_service,
)


@pytest.fixture
def auth_service():
    """Create a configured auth service."""
    return GoogleAuthService()


class TestGoogleAuthServiceInit:
    """Test GoogleAuthService initialization."""

    def test_init_with_config(self):
        service = get_google_auth_service()
        assert service.settings.google_client_id == "test-client-id.apps.googleusercontent.com"

    def test_init_without_config(self, monkeypatch):
        """Test initialization without config raises error."""
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "")
        from kiosk.config import get_settings
        get_settings.cache_clear()

        with pytest.raises(GoogleAuthConfigError) as exc_info:
            GoogleAuthService()
        assert "not configured" in str(exc_info.value)


class TestAuthorizationUrl:
    """Test authorization URL generation."""

    def test_get_authorization_url_with_state(self, auth_service):
        url, state = auth_service.get_authorization_url(state="csrf-123")

        assert state == "csrf-123"
        assert "accounts.google.com" in url
        assert "state=csrf-123" in url
        assert "client_id=test-client-id" in url

    def test_requests_offline_access_and_consent(self, auth_service):
        """Test that a refresh token is always requested."""
        url, _ = auth_service.get_authorization_url(state="s")

        assert "access_type=offline" in url
        assert "prompt=consent" in url

    def test_requests_read_only_calendar_scope(self, auth_service):
        url, _ = auth_service.get_authorization_url(state="s")

        assert "calendar.readonly" in url
        assert "https://www.googleapis.com/auth/calendar.readonly" in CALENDAR_SCOPES


class TestExchangeCode:
    """Test authorization code exchange."""

    @patch("kiosk.services.google_auth.Flow")
    def test_exchange_code_returns_credentials(self, mock_flow_class, auth_service):
        credentials = MagicMock()
        credentials.token = "access-token"
        credentials.refresh_token = "refresh-token"
        credentials.token_uri = "https://oauth2.googleapis.com/token"
        credentials.client_id = "client-id"
        credentials.client_secret = "client-secret"
        credentials.scopes = CALENDAR_SCOPES
        credentials.expiry = datetime(2030, 1, 1, 12, 0)
        mock_flow_class.from_client_config.return_value.credentials = credentials

        result = auth_service.exchange_code("auth-code")

        mock_flow_class.from_client_config.return_value.fetch_token.assert_called_once_with(code="auth-code")
        assert result["token"] == "access-token"
        assert result["refresh_token"] == "refresh-token"
        assert result["expiry"] == "2030-01-01T12:00:00"

    @patch("kiosk.services.google_auth.Flow")
    def test_exchange_code_failure(self, mock_flow_class, auth_service):
        mock_flow_class.from_client_config.return_value.fetch_token.side_effect = Exception("invalid_grant")

        with pytest.raises(GoogleAuthTokenError, match="invalid_grant"):
            auth_service.exchange_code("bad-code")


class TestUserInfo:
    """Test profile lookup."""

    @patch("kiosk.services.google_auth.build")
    def test_get_user_info(self, mock_build, auth_service):
        mock_build.return_value.userinfo.return_value.get.return_value.execute.return_value = {
            "id": "123",
            "email": "owner@example.com",
            "name": "Owner",
            "picture": "https://example.com/p.png",
        }

        info = auth_service.get_user_info({"token": "t"})

        assert info == {
            "id": "123",
            "email": "owner@example.com",
            "name": "Owner",
            "picture": "https://example.com/p.png",
        }
        assert mock_build.call_args[0][:2] == ("oauth2", "v2")

    @patch("kiosk.services.google_auth.build")
    def test_get_user_info_failure(self, mock_build, auth_service):
        mock_build.return_value.userinfo.return_value.get.return_value.execute.side_effect = Exception("boom")

        with pytest.raises(GoogleAuthTokenError, match="Failed to get user info"):
            auth_service.get_user_info({"token": "t"})


class TestRefreshCredentials:
    """Test token refresh."""

    def test_refresh_without_refresh_token(self, auth_service):
        with pytest.raises(GoogleAuthTokenError, match="No refresh token"):
            auth_service.refresh_credentials({"token": "old"})

    @patch("kiosk.services.google_auth.Request")
    @patch("kiosk.services.google_auth.Credentials")
    def test_refresh_keeps_refresh_token(self, mock_credentials_class, mock_request, auth_service):
        """Test that an unrotated refresh token is carried over."""
        refreshed = mock_credentials_class.return_value
        refreshed.token = "new-access-token"
        refreshed.refresh_token = None
        refreshed.token_uri = "https://oauth2.googleapis.com/token"
        refreshed.client_id = "client-id"
        refreshed.client_secret = "client-secret"
        refreshed.scopes = CALENDAR_SCOPES
        refreshed.expiry = datetime(2030, 1, 1, 13, 0)

        result = auth_service.refresh_credentials({"token": "old", "refresh_token": "keep-me"})

        refreshed.refresh.assert_called_once()
        assert result["token"] == "new-access-token"
        assert result["refresh_token"] == "keep-me"
        assert result["expiry"] == "2030-01-01T13:00:00"

    @patch("kiosk.services.google_auth.Request")
    @patch("kiosk.services.google_auth.Credentials")
    def test_refresh_failure(self, mock_credentials_class, mock_request, auth_service):
        mock_credentials_class.return_value.refresh.side_effect = RefreshError("invalid_grant")

        with pytest.raises(GoogleAuthTokenError, match="Failed to refresh"):
            auth_service.refresh_credentials({"token": "old", "refresh_token": "r"})


class TestRevokeCredentials:
    """Test token revocation."""

    @patch("requests.post")
    def test_revoke_success(self, mock_post, auth_service):
        mock_post.return_value.status_code = 200

        assert auth_service.revoke_credentials({"token": "t"}) is True
        assert mock_post.call_args.kwargs["params"] == {"token": "t"}

    @patch("requests.post")
    def test_revoke_network_error(self, mock_post, auth_service):
        mock_post.side_effect = requests.ConnectionError("offline")

        assert auth_service.revoke_credentials({"token": "t"}) is False

    def test_revoke_without_token(self, auth_service):
        assert auth_service.revoke_credentials({}) is False


class TestCalendarClient:
    """Test Calendar API client construction."""

    @patch("kiosk.services.google_auth.build")
    def test_build_calendar_client(self, mock_build, auth_service):
        client = auth_service.build_calendar_client({"token": "t", "refresh_token": "r"})

        assert client is mock_build.return_value
        args, kwargs = mock_build.call_args
        assert args == ("calendar", "v3")
        assert kwargs["cache_discovery"] is False
