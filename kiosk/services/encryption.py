"""
Encryption of OAuth tokens at rest.

Fernet (AES-128-CBC + HMAC-SHA256) keyed by ENCRYPTION_KEY.
"""

import json
from functools import lru_cache
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from kiosk.config import get_settings


class EncryptionError(Exception):
    """Base exception for encryption errors."""

    pass


class EncryptionKeyError(EncryptionError):
    """Raised when the encryption key is missing or malformed."""

    pass


class DecryptionError(EncryptionError):
    """Raised when stored data cannot be decrypted."""

    pass


class EncryptionService:
    """Encrypts strings and JSON documents with a single Fernet key."""

    def __init__(self, encryption_key: str):
        if not encryption_key:
            raise EncryptionKeyError("Encryption key is required")

        try:
            self._fernet = Fernet(encryption_key.encode())
        except (ValueError, TypeError) as e:
            raise EncryptionKeyError(f"Invalid encryption key: {e}")

    def encrypt(self, data: str) -> str:
        return self._fernet.encrypt(data.encode()).decode()

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt a token produced by encrypt().

        Raises:
            DecryptionError: If the token was tampered with or the key changed
        """
        try:
            return self._fernet.decrypt(encrypted_data.encode()).decode()
        except InvalidToken:
            raise DecryptionError("Invalid or corrupted encrypted data")

    def encrypt_json(self, data: dict[str, Any]) -> str:
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Failed to serialize data to JSON: {e}")
        return self.encrypt(payload)

    def decrypt_json(self, encrypted_data: str) -> dict[str, Any]:
        payload = self.decrypt(encrypted_data)
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecryptionError(f"Failed to parse decrypted data as JSON: {e}")

    @staticmethod
    def generate_key() -> str:
        """New key suitable for the ENCRYPTION_KEY env var."""
        return Fernet.generate_key().decode()


@lru_cache
def get_encryption_service() -> EncryptionService:
    """
    Get the cached encryption service for the configured key.

    Raises:
        EncryptionKeyError: If ENCRYPTION_KEY is not set
    """
    settings = get_settings()
    if not settings.encryption_configured:
        raise EncryptionKeyError(
            "Encryption key not configured. Set ENCRYPTION_KEY in .env"
        )
    return EncryptionService(settings.encryption_key)
