"""bcrypt password hashing."""

from __future__ import annotations

import bcrypt

# bcrypt silently ignores input beyond 72 bytes; newer releases raise instead.
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 6


class PasswordPolicyError(ValueError):
    """Raised when a new password does not meet the minimum policy."""


def check_password_policy(password: str) -> None:
    """Reject passwords that are too short or too long for bcrypt."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(
            f"La password deve contenere almeno {MIN_PASSWORD_LENGTH} caratteri."
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordPolicyError(
            f"La password non può superare {MAX_PASSWORD_BYTES} byte."
        )


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Malformed hashes (including legacy plaintext values) never verify.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
