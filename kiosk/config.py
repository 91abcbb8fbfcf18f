"""
Application configuration using pydantic-settings.
Loads values from .env file in project root.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database settings
    db_path: str = "./data/calendar.db"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3001
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Session cookie settings
    session_secret: str = "change-this-secret-in-production"
    session_max_age_seconds: int = 24 * 60 * 60

    # Google OAuth settings
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:3001/api/auth/callback"

    # Encryption settings (for OAuth token storage)
    encryption_key: str = ""

    # Calendar sync settings
    sync_enabled: bool = True
    sync_interval_minutes: int = 15
    max_events_days: int = 30

    # IANA timezone used for all-day events and the dashboard grid
    timezone: str = "UTC"

    @property
    def database_url(self) -> str:
        """Generate SQLAlchemy database URL."""
        return f"sqlite:///{self.db_path}"

    @property
    def db_directory(self) -> Path:
        """Directory holding the SQLite file."""
        return Path(self.db_path).expanduser().resolve().parent

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def google_oauth_configured(self) -> bool:
        """Check if Google OAuth is properly configured."""
        return bool(
            self.google_client_id
            and self.google_client_secret
            and self.google_redirect_uri
        )

    @property
    def encryption_configured(self) -> bool:
        """Check if encryption key is configured."""
        return bool(self.encryption_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
