"""Fernet encryption for stored monitoring documents.

Each record document (entry, treatment, profile, device status) is written
to SQLite as a Fernet token. Window columns (``mills``, ``event_type``) stay
in clear text so range scans do not require decrypting the whole table.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a document cannot be encrypted or decrypted."""


class FieldEncryptor:
    """Round-trips JSON-serializable documents through a Fernet key.

    Usage::

        encryptor = FieldEncryptor(FieldEncryptor.generate_key())
        token = encryptor.encrypt({"sgv": 120, "date": 1000})
        encryptor.decrypt(token)  # {"sgv": 120, "date": 1000}
    """

    def __init__(self, key: str) -> None:
        """
        Raises:
            EncryptionError: If the key is blank or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, document: Any) -> str:
        """Serialize ``document`` as compact JSON and encrypt it.

        ``None`` encrypts to the empty string.
        """
        if document is None:
            return ""
        try:
            payload = json.dumps(document, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Document is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(payload).decode("utf-8")

    def decrypt(self, token: str) -> Any:
        if not token:
            return None
        try:
            payload = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        return json.loads(payload)

    @staticmethod
    def generate_key() -> str:
        """Generate a fresh URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
