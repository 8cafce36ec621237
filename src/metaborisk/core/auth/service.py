"""Account service — login, registration, profile and admin account lifecycle.

Error messages are user-facing and in Italian, matching the clinic UI.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from metaborisk.core.auth.accounts import AccountRepository, DuplicateUsernameError
from metaborisk.core.auth.passwords import (
    PasswordPolicyError,
    check_password_policy,
    hash_password,
    verify_password,
)
from metaborisk.core.storage.models import Account

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Dr."


class AccountError(Exception):
    """Base class for account errors. ``str(exc)`` is safe to show to users."""


class InvalidCredentialsError(AccountError):
    def __init__(self) -> None:
        super().__init__("Credenziali non valide")


class AccountDisabledError(AccountError):
    def __init__(self) -> None:
        super().__init__("Account disattivato")


class AccountExpiredError(AccountError):
    def __init__(self) -> None:
        super().__init__("Abbonamento scaduto")


class UsernameTakenError(AccountError):
    def __init__(self) -> None:
        super().__init__("Nome utente già in uso")


class AccountNotFoundError(AccountError):
    def __init__(self) -> None:
        super().__init__("Utente non trovato")


class InvalidAccountDataError(AccountError):
    """Raised for malformed usernames, passwords or expiry dates."""


def parse_expiry(value: str | None) -> datetime | None:
    """Parse an expiry timestamp.

    A bare date (``2026-12-31``) means the account stays valid for that whole
    day (UTC). Naive datetimes are taken as UTC.

    Raises:
        InvalidAccountDataError: If the value is not ISO 8601.
    """
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            if day == date.max:
                return datetime.max.replace(tzinfo=timezone.utc)
            return datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError) as exc:
        raise InvalidAccountDataError("Data di scadenza non valida") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(account: Account, now: datetime | None = None) -> bool:
    expiry = parse_expiry(account.expires_at)
    if expiry is None:
        return False
    return expiry < (now or datetime.now(timezone.utc))


def _validate_credentials(username: str, password: str) -> str:
    username = (username or "").strip()
    if not username:
        raise InvalidAccountDataError("Il nome utente è obbligatorio")
    try:
        check_password_policy(password or "")
    except PasswordPolicyError as exc:
        raise InvalidAccountDataError(str(exc)) from exc
    return username


class AccountService:
    """Account use cases on top of :class:`AccountRepository`.

    Usage::

        service = AccountService(AccountRepository(db))
        doctor = service.register("mrossi", "s3cret!", "Mario", "Rossi")
        service.login("mrossi", "s3cret!")
    """

    def __init__(self, accounts: AccountRepository) -> None:
        self._accounts = accounts

    @property
    def accounts(self) -> AccountRepository:
        return self._accounts

    # ------------------------------------------------------------------
    # Doctor-facing
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> Account:
        """Authenticate a user.

        Raises:
            InvalidCredentialsError: Unknown user or wrong password.
            AccountDisabledError: The account was deactivated by an admin.
            AccountExpiredError: The subscription expiry date has passed.
        """
        account = self._accounts.get_by_username((username or "").strip())
        if account is None:
            raise InvalidCredentialsError()

        stored_hash = self._accounts.get_password_hash(account.id) or ""
        if not verify_password(password or "", stored_hash):
            logger.info("Failed login for account %s", account.id)
            raise InvalidCredentialsError()
        if not account.is_active:
            raise AccountDisabledError()
        if is_expired(account):
            raise AccountExpiredError()

        logger.info("Account %s logged in", account.id)
        return account

    def register(
        self,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> Account:
        """Self-service registration of an active doctor account."""
        username = _validate_credentials(username, password)
        try:
            return self._accounts.create(
                username,
                hash_password(password),
                role="user",
                profile={
                    "first_name": first_name,
                    "last_name": last_name,
                    "title": DEFAULT_TITLE,
                },
            )
        except DuplicateUsernameError as exc:
            raise UsernameTakenError() from exc

    def get_account(self, account_id: str) -> Account:
        account = self._accounts.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    def update_profile(self, account_id: str, **fields: str | None) -> Account:
        """Update profile fields; fields passed as ``None`` keep their value."""
        if not self._accounts.update_profile(account_id, fields):
            raise AccountNotFoundError()
        return self.get_account(account_id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[Account]:
        return self._accounts.list_all()

    def create_account(self, username: str, password: str, *, role: str = "user") -> Account:
        """Admin-created account. Unlike :meth:`register` no profile is set."""
        username = _validate_credentials(username, password)
        if role not in ("admin", "user"):
            raise InvalidAccountDataError("Ruolo non valido")
        try:
            return self._accounts.create(username, hash_password(password), role=role)
        except DuplicateUsernameError as exc:
            raise UsernameTakenError() from exc

    def set_status(
        self, account_id: str, *, is_active: bool, expires_at: str | None = None
    ) -> Account:
        """Activate/deactivate an account and set (or clear) its expiry."""
        expiry = parse_expiry(expires_at)
        stored = expiry.isoformat() if expiry is not None else None
        if not self._accounts.update_status(account_id, is_active=is_active, expires_at=stored):
            raise AccountNotFoundError()
        logger.info(
            "Account %s status set: active=%s, expires_at=%s", account_id, is_active, stored
        )
        return self.get_account(account_id)

    def change_password(self, account_id: str, new_password: str) -> None:
        try:
            check_password_policy(new_password or "")
        except PasswordPolicyError as exc:
            raise InvalidAccountDataError(str(exc)) from exc
        if not self._accounts.update_password_hash(account_id, hash_password(new_password)):
            raise AccountNotFoundError()
        logger.info("Password changed for account %s", account_id)

    def ensure_admin(self, username: str, password: str) -> Account | None:
        """Create the bootstrap admin account if it does not exist yet.

        Returns the existing or newly created admin, or None when no password
        is configured and the account is missing.
        """
        existing = self._accounts.get_by_username(username)
        if existing is not None:
            return existing
        if not password:
            logger.warning(
                "No ADMIN_PASSWORD configured; admin account %r was not created", username
            )
            return None
        account = self.create_account(username, password, role="admin")
        self._accounts.update_profile(
            account.id,
            {"first_name": "System", "last_name": "Admin", "title": DEFAULT_TITLE},
        )
        logger.info("Bootstrap admin account created")
        return self.get_account(account.id)
