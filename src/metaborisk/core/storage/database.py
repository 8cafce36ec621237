"""SQLite database management for the MetaboRisk clinic store.

Handles connection lifecycle, schema creation, and migrations. The handle is
constructed once by the application factory and passed to every repository.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- Doctors and administrators
CREATE TABLE IF NOT EXISTS users (
    id             TEXT PRIMARY KEY,
    username       TEXT NOT NULL UNIQUE,
    password_hash  TEXT NOT NULL,
    role           TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user')),
    is_active      INTEGER NOT NULL DEFAULT 1,
    expires_at     TEXT,
    first_name     TEXT,
    last_name      TEXT,
    title          TEXT,
    specialization TEXT,
    email          TEXT,
    phone          TEXT,
    created_at     TEXT NOT NULL
);

-- One row per patient, owned by exactly one doctor
CREATE TABLE IF NOT EXISTS patients (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    identity_enc TEXT NOT NULL,   -- encrypted first/last name + birth date
    gender       TEXT NOT NULL CHECK (gender IN ('M', 'F')),
    created_at   TEXT NOT NULL
);

-- Append-only assessment snapshots; the newest one is "current"
CREATE TABLE IF NOT EXISTS assessments (
    id               TEXT PRIMARY KEY,
    patient_id       TEXT NOT NULL REFERENCES patients(id) ON DELETE CASCADE,
    measurements_enc TEXT NOT NULL,
    narrative_enc    TEXT,

    -- Unencrypted derived metrics (display only, recomputable)
    bmi              REAL,
    homa_ir          REAL,
    tg_hdl_ratio     REAL,

    created_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_patients_user        ON patients(user_id);
CREATE INDEX IF NOT EXISTS idx_assessments_patient  ON assessments(patient_id);
CREATE INDEX IF NOT EXISTS idx_assessments_created  ON assessments(created_at);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free access and LLM disclosure log)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    user_id         TEXT,
    patient_id      TEXT,
    llm_provider    TEXT,
    llm_disclosed   INTEGER DEFAULT 0,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class ClinicDatabase:
    """SQLite database manager for the MetaboRisk store.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for tests and for offline mode.

    Usage::

        db = ClinicDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and ensure the schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Clinic database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Clinic database closed")

    def __enter__(self) -> ClinicDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
