"""In-memory session tokens.

Tokens are opaque random strings mapped to an account id. They live only in
process memory, so a restart logs everybody out.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Session:
    token: str
    account_id: str
    expires_at: float  # time.monotonic() deadline


class SessionManager:
    """Issues, resolves and revokes session tokens with a fixed TTL."""

    def __init__(self, ttl_seconds: float = 8 * 3600, clock=time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def issue(self, account_id: str) -> str:
        self._purge_expired()
        token = secrets.token_urlsafe(32)
        self._sessions[token] = Session(
            token=token,
            account_id=account_id,
            expires_at=self._clock() + self._ttl,
        )
        return token

    def resolve(self, token: str | None) -> str | None:
        """Return the account id for a live token, or None."""
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            del self._sessions[token]
            return None
        return session.account_id

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def revoke_account(self, account_id: str) -> int:
        """Drop every session of an account (e.g. after a password reset)."""
        tokens = [t for t, s in self._sessions.items() if s.account_id == account_id]
        for token in tokens:
            del self._sessions[token]
        if tokens:
            logger.info("Revoked %d sessions for account %s", len(tokens), account_id)
        return len(tokens)

    def active_count(self) -> int:
        self._purge_expired()
        return len(self._sessions)

    def _purge_expired(self) -> None:
        now = self._clock()
        for token in [t for t, s in self._sessions.items() if s.expires_at <= now]:
            del self._sessions[token]
