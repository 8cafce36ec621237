"""Persistence for doctor and admin accounts."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from metaborisk.core.storage.database import ClinicDatabase
from metaborisk.core.storage.models import Account

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "title", "specialization", "email", "phone")


class DuplicateUsernameError(Exception):
    """Raised when inserting an account whose username already exists."""


class AccountRepository:
    """CRUD over the ``users`` table."""

    def __init__(self, database: ClinicDatabase) -> None:
        self._db = database

    def create(
        self,
        username: str,
        password_hash: str,
        *,
        role: str = "user",
        is_active: bool = True,
        profile: dict[str, str] | None = None,
    ) -> Account:
        """Insert a new account and return it.

        Raises:
            DuplicateUsernameError: If the username is taken.
        """
        profile = profile or {}
        account_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).isoformat()
        conn = self._db.connection
        try:
            conn.execute(
                """INSERT INTO users (
                    id, username, password_hash, role, is_active,
                    first_name, last_name, title, specialization, email, phone,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    account_id,
                    username,
                    password_hash,
                    role,
                    int(is_active),
                    *(profile.get(name) for name in PROFILE_FIELDS),
                    created_at,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise DuplicateUsernameError(username) from exc

        logger.info("Created %s account %s", role, account_id)
        return Account(
            id=account_id,
            username=username,
            role=role,
            is_active=is_active,
            created_at=created_at,
            **{name: profile.get(name) or "" for name in PROFILE_FIELDS},
        )

    def get_by_id(self, account_id: str) -> Account | None:
        row = self._db.connection.execute(
            "SELECT * FROM users WHERE id = ?", (account_id,)
        ).fetchone()
        return self._row_to_account(row) if row else None

    def get_by_username(self, username: str) -> Account | None:
        row = self._db.connection.execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        ).fetchone()
        return self._row_to_account(row) if row else None

    def get_password_hash(self, account_id: str) -> str | None:
        row = self._db.connection.execute(
            "SELECT password_hash FROM users WHERE id = ?", (account_id,)
        ).fetchone()
        return row[0] if row else None

    def list_all(self) -> list[Account]:
        """All accounts, newest first."""
        rows = self._db.connection.execute(
            "SELECT * FROM users ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def update_profile(self, account_id: str, fields: dict[str, str | None]) -> bool:
        """Overwrite the given profile fields; ``None`` values are left unchanged."""
        updates = {
            name: value
            for name, value in fields.items()
            if name in PROFILE_FIELDS and value is not None
        }
        if not updates:
            return self.get_by_id(account_id) is not None

        # Column names come from PROFILE_FIELDS only.
        assignments = ", ".join(f"{name} = ?" for name in updates)
        cursor = self._db.connection.execute(
            f"UPDATE users SET {assignments} WHERE id = ?",
            (*updates.values(), account_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    def update_status(
        self, account_id: str, *, is_active: bool, expires_at: str | None
    ) -> bool:
        cursor = self._db.connection.execute(
            "UPDATE users SET is_active = ?, expires_at = ? WHERE id = ?",
            (int(is_active), expires_at, account_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    def update_password_hash(self, account_id: str, password_hash: str) -> bool:
        cursor = self._db.connection.execute(
            "UPDATE users SET password_hash = ? WHERE id = ?",
            (password_hash, account_id),
        )
        self._db.connection.commit()
        return cursor.rowcount > 0

    def count(self) -> int:
        row = self._db.connection.execute("SELECT COUNT(*) FROM users").fetchone()
        return row[0]

    @staticmethod
    def _row_to_account(row: Any) -> Account:
        return Account(
            id=row["id"],
            username=row["username"],
            role=row["role"],
            is_active=bool(row["is_active"]),
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            first_name=row["first_name"] or "",
            last_name=row["last_name"] or "",
            title=row["title"] or "",
            specialization=row["specialization"] or "",
            email=row["email"] or "",
            phone=row["phone"] or "",
        )
