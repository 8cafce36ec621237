"""Tests for AccountService: login, registration, profile and admin lifecycle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from metaborisk.core.auth.service import (
    AccountDisabledError,
    AccountExpiredError,
    AccountNotFoundError,
    InvalidAccountDataError,
    InvalidCredentialsError,
    UsernameTakenError,
    is_expired,
    parse_expiry,
)
from metaborisk.core.storage.models import Account


class TestParseExpiry:
    def test_empty_is_none(self):
        assert parse_expiry(None) is None
        assert parse_expiry("") is None

    def test_bare_date_covers_whole_day(self):
        assert parse_expiry("2026-12-31") == datetime(2027, 1, 1, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        assert parse_expiry("2026-12-31T10:00:00") == datetime(
            2026, 12, 31, 10, tzinfo=timezone.utc
        )

    def test_offset_preserved(self):
        parsed = parse_expiry("2026-12-31T10:00:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_invalid(self):
        with pytest.raises(InvalidAccountDataError):
            parse_expiry("31/12/2026")

    def test_last_representable_day(self):
        assert parse_expiry("9999-12-31") == datetime.max.replace(tzinfo=timezone.utc)


class TestIsExpired:
    def _account(self, expires_at):
        return Account(id="a", username="u", role="user", expires_at=expires_at)

    def test_no_expiry(self):
        assert is_expired(self._account(None)) is False

    def test_past_and_future(self):
        now = datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert is_expired(self._account("2026-05-31"), now) is True
        assert is_expired(self._account("2026-06-01"), now) is False


class TestRegisterAndLogin:
    def test_register_defaults(self, account_service):
        account = account_service.register("mrossi", "secret123", "Mario", "Rossi")
        assert account.role == "user"
        assert account.is_active is True
        assert account.title == "Dr."
        assert account.first_name == "Mario"

    def test_register_duplicate(self, account_service, doctor):
        with pytest.raises(UsernameTakenError, match="Nome utente già in uso"):
            account_service.register("mrossi", "another1")

    def test_register_short_password(self, account_service):
        with pytest.raises(InvalidAccountDataError):
            account_service.register("newdoc", "123")

    def test_register_blank_username(self, account_service):
        with pytest.raises(InvalidAccountDataError):
            account_service.register("   ", "secret123")

    def test_login_success(self, account_service, doctor):
        assert account_service.login("mrossi", "secret123").id == doctor.id

    def test_login_wrong_password(self, account_service, doctor):
        with pytest.raises(InvalidCredentialsError, match="Credenziali non valide"):
            account_service.login("mrossi", "nope-nope")

    def test_login_unknown_user(self, account_service):
        with pytest.raises(InvalidCredentialsError):
            account_service.login("ghost", "secret123")

    def test_login_disabled(self, account_service, doctor):
        account_service.set_status(doctor.id, is_active=False)
        with pytest.raises(AccountDisabledError, match="Account disattivato"):
            account_service.login("mrossi", "secret123")

    def test_login_expired(self, account_service, doctor):
        yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).date().isoformat()
        account_service.set_status(doctor.id, is_active=True, expires_at=yesterday)
        with pytest.raises(AccountExpiredError, match="Abbonamento scaduto"):
            account_service.login("mrossi", "secret123")

    def test_password_hash_not_exposed(self, doctor):
        assert "password" not in " ".join(doctor.to_dict())


class TestProfile:
    def test_update_only_given_fields(self, account_service, doctor):
        updated = account_service.update_profile(
            doctor.id, specialization="Nutrizione", email=None
        )
        assert updated.specialization == "Nutrizione"
        assert updated.first_name == "Mario"
        assert updated.email == ""

    def test_update_unknown_account(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.update_profile("missing", title="Prof.")

    def test_get_unknown_account(self, account_service):
        with pytest.raises(AccountNotFoundError, match="Utente non trovato"):
            account_service.get_account("missing")


class TestAdmin:
    def test_list_newest_first(self, account_service, doctor, other_doctor):
        usernames = [a.username for a in account_service.list_accounts()]
        assert usernames.index("lbianchi") < usernames.index("mrossi")

    def test_create_account_has_no_profile(self, account_service):
        account = account_service.create_account("nuovo", "secret123")
        assert account.role == "user"
        assert account.title == ""

    def test_create_account_invalid_role(self, account_service):
        with pytest.raises(InvalidAccountDataError):
            account_service.create_account("nuovo", "secret123", role="root")

    def test_set_status_normalizes_expiry(self, account_service, doctor):
        account = account_service.set_status(doctor.id, is_active=True, expires_at="2030-01-31")
        assert account.expires_at == "2030-02-01T00:00:00+00:00"

    def test_set_status_far_future_expiry(self, account_service, doctor):
        account = account_service.set_status(doctor.id, is_active=True, expires_at="9999-12-31")
        assert account.expires_at.startswith("9999-12-31T23:59:59")
        assert account_service.login("mrossi", "secret123").id == doctor.id

    def test_set_status_clears_expiry(self, account_service, doctor):
        account_service.set_status(doctor.id, is_active=True, expires_at="2030-01-31")
        assert account_service.set_status(doctor.id, is_active=True).expires_at is None

    def test_set_status_unknown(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.set_status("missing", is_active=False)

    def test_change_password(self, account_service, doctor):
        account_service.change_password(doctor.id, "brandnew1")
        assert account_service.login("mrossi", "brandnew1").id == doctor.id
        with pytest.raises(InvalidCredentialsError):
            account_service.login("mrossi", "secret123")

    def test_change_password_policy(self, account_service, doctor):
        with pytest.raises(InvalidAccountDataError):
            account_service.change_password(doctor.id, "x")

    def test_change_password_unknown(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.change_password("missing", "brandnew1")


class TestEnsureAdmin:
    def test_creates_admin(self, account_service):
        admin = account_service.ensure_admin("admin", "adminpass")
        assert admin.is_admin
        assert admin.first_name == "System"
        assert account_service.login("admin", "adminpass").id == admin.id

    def test_idempotent(self, account_service):
        first = account_service.ensure_admin("admin", "adminpass")
        second = account_service.ensure_admin("admin", "other-pass")
        assert first.id == second.id
        assert account_service.accounts.count() == 1

    def test_no_password_no_admin(self, account_service):
        assert account_service.ensure_admin("admin", "") is None
        assert account_service.accounts.count() == 0
