"""Turns a session token into a live, authorised account."""

from __future__ import annotations

import logging

from metaborisk.core.auth.service import (
    AccountDisabledError,
    AccountError,
    AccountExpiredError,
    AccountService,
    is_expired,
)
from metaborisk.core.auth.sessions import SessionManager
from metaborisk.core.storage.models import Account

logger = logging.getLogger(__name__)


class NotAuthenticatedError(AccountError):
    def __init__(self) -> None:
        super().__init__("Sessione non valida o scaduta")


class PermissionDeniedError(AccountError):
    def __init__(self) -> None:
        super().__init__("Operazione riservata agli amministratori")


class AccessGuard:
    """Resolves tokens against a fresh account read on every call.

    Deactivating or expiring an account therefore takes effect on the very
    next request, and the offending token is revoked.
    """

    def __init__(self, sessions: SessionManager, accounts: AccountService) -> None:
        self.sessions = sessions
        self.accounts = accounts

    def current_account(self, token: str | None) -> Account:
        account_id = self.sessions.resolve(token)
        if account_id is None:
            raise NotAuthenticatedError()

        account = self.accounts.accounts.get_by_id(account_id)
        if account is None:
            self.sessions.revoke(token or "")
            raise NotAuthenticatedError()
        if not account.is_active:
            self.sessions.revoke(token or "")
            raise AccountDisabledError()
        if is_expired(account):
            self.sessions.revoke(token or "")
            raise AccountExpiredError()
        return account

    def require_admin(self, token: str | None) -> Account:
        account = self.current_account(token)
        if not account.is_admin:
            logger.warning("Account %s attempted an admin operation", account.id)
            raise PermissionDeniedError()
        return account
