"""Audit logger — PHI-free access log and LLM disclosure tracking.

Records tool invocations, patient deletions and account administration in
the ``audit_log`` table:

* ``tool_input_hash`` — SHA-256 of canonical JSON (no raw patient data in logs).
* ``llm_disclosed``  — whether patient data was sent to an external model.
* ``user_id`` / ``patient_id`` — opaque ids only, never names.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from metaborisk.core.storage.database import ClinicDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'data_delete' | 'account_admin'
    tool_name: str = ""
    tool_input_hash: str = ""
    user_id: str | None = None
    patient_id: str | None = None
    llm_provider: str | None = None
    llm_disclosed: bool = False
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    Writes are committed immediately. A failed write is logged and swallowed
    so that auditing can never break the operation being audited.

    Usage::

        audit = AuditLogger(clinic_db)
        audit.log_tool_call(
            tool_name="generate_clinical_summary",
            tool_input={"patient_id": pid},
            user_id=doctor_id,
            llm_provider="gemini",
            llm_disclosed=True,
        )
    """

    def __init__(self, database: ClinicDatabase) -> None:
        self._db = database

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its id ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":")) if event.metadata else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash,
                    user_id, patient_id, llm_provider, llm_disclosed,
                    duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.user_id,
                    event.patient_id,
                    event.llm_provider,
                    1 if event.llm_disclosed else 0,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except sqlite3.Error:
            logger.exception("Failed to write audit event; event lost")
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        user_id: str | None = None,
        patient_id: str | None = None,
        llm_provider: str | None = None,
        llm_disclosed: bool = False,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a tool invocation; ``tool_input`` is hashed, never stored."""
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            user_id=user_id,
            patient_id=patient_id,
            llm_provider=llm_provider,
            llm_disclosed=llm_disclosed,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        user_id: str | None = None,
        patient_id: str | None = None,
        count: int = 0,
    ) -> str:
        """Log the deletion of patient data."""
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            user_id=user_id,
            patient_id=patient_id,
            metadata={"records_deleted": count},
        ))

    def log_account_change(
        self,
        *,
        tool_name: str,
        admin_id: str,
        target_user_id: str,
        change: str,
    ) -> str:
        """Log an admin action on another account (status, password, creation)."""
        return self.log_event(AuditEvent(
            action="account_admin",
            tool_name=tool_name,
            user_id=admin_id,
            metadata={"target_user_id": target_user_id, "change": change},
        ))

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        user_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if tool_name:
            conditions.append("tool_name = ?")
            params.append(tool_name)
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, since: str | None = None) -> int:
        """Count audit events, optionally since a timestamp."""
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE timestamp >= ?", (since,)
            ).fetchone()
        else:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        return row[0]

    def count_disclosures(self, *, since: str | None = None) -> int:
        """Count events where patient data was sent to an external model."""
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1 AND timestamp >= ?",
                (since,),
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1"
            ).fetchone()
        return row[0]
