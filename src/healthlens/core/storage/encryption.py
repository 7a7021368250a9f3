"""Fernet payload encryption for the health data bank.

Raw record payloads and cached insight snapshots are JSON documents that are
encrypted before they touch SQLite. Only the columns needed for window
queries and cache expiry (user id, timestamps) stay in clear text.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a payload cannot be encrypted or decrypted."""


def _json_default(value: Any) -> Any:
    # Snapshots carry datetimes; they round-trip as ISO 8601 strings.
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class FieldEncryptor:
    """Encrypts JSON-serializable payloads with a Fernet key.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt({"type": "heart_rate", "value": 72})
        encryptor.decrypt(token)  # {"type": "heart_rate", "value": 72}
    """

    def __init__(self, key: str | bytes) -> None:
        """
        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        raw = key.encode("utf-8") if isinstance(key, str) else key
        if not raw or not raw.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(raw)
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, data: Any) -> str:
        """Serialize ``data`` to compact JSON and return a Fernet token.

        ``None`` encrypts to the empty string so nullable columns stay empty.
        """
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":"), default=_json_default)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload is not JSON serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            EncryptionError: On a tampered token, a wrong key or bad JSON.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decrypted payload is not valid JSON: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
