"""Fernet field encryption for patient data at rest.

Patient identity (names, birth date), raw measurements and AI narratives are
encrypted before they reach SQLite. Derived metrics stay in clear so the
patient list can be displayed without decrypting every assessment.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts JSON-serializable values into Fernet tokens and back.

    Usage::

        encryptor = FieldEncryptor(key="...")
        token = encryptor.encrypt({"first_name": "Mario"})
        encryptor.decrypt(token)  # {"first_name": "Mario"}
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    @classmethod
    def ephemeral(cls) -> FieldEncryptor:
        """Create an encryptor with a throwaway key (offline / in-memory mode)."""
        logger.warning("Using an ephemeral encryption key; stored data will not be readable after restart")
        return cls(cls.generate_key())

    def encrypt(self, data: Any) -> str:
        """Serialize ``data`` to JSON and encrypt it. ``None`` maps to ``""``.

        Raises:
            EncryptionError: If the value is not JSON-serializable.
        """
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Decrypt a token produced by :meth:`encrypt`. Empty tokens map to ``None``.

        Raises:
            EncryptionError: On a tampered token or a wrong key.
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
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
