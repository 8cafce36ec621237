"""Patient repository — per-doctor CRUD over encrypted patient and assessment rows.

Every read and write is scoped by the owning doctor's id. A doctor can never
see, overwrite or delete another doctor's patients: lookups simply miss, and
an attempt to save onto a foreign patient id raises :class:`OwnershipError`.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from metaborisk.core.storage.database import ClinicDatabase
from metaborisk.core.storage.encryption import EncryptionError, FieldEncryptor
from metaborisk.core.storage.models import PatientRecord, SaveResult, StoredAssessment
from metaborisk.domains.cardiometabolic.domain_logic.risk_models import (
    DerivedMetrics,
    MeasurementInput,
    PatientDetails,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class OwnershipError(RepositoryError):
    """Raised when a doctor tries to modify a patient owned by someone else."""


_LATEST_ASSESSMENT_JOIN = """
    SELECT p.id, p.user_id, p.identity_enc, p.gender, p.created_at,
           a.id AS assessment_id, a.measurements_enc, a.narrative_enc,
           a.bmi, a.homa_ir, a.tg_hdl_ratio, a.created_at AS assessed_at
    FROM patients p
    LEFT JOIN assessments a ON a.id = (
        SELECT id FROM assessments
        WHERE patient_id = p.id
        ORDER BY created_at DESC, rowid DESC
        LIMIT 1
    )
"""


class PatientRepository:
    """CRUD repository for patients and their assessment history.

    Usage::

        db = ClinicDatabase(":memory:")
        db.initialize()
        repo = PatientRepository(db, FieldEncryptor(key))

        result = repo.save_assessment(doctor_id, details, measurements, metrics)
        latest = repo.load_latest_assessment(doctor_id, result.patient_id)
    """

    def __init__(self, database: ClinicDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_assessment(
        self,
        owner_id: str,
        details: PatientDetails,
        measurements: MeasurementInput,
        metrics: DerivedMetrics,
        *,
        patient_id: str | None = None,
        narrative: str | None = None,
    ) -> SaveResult:
        """Create or update a patient and append a new assessment snapshot.

        Args:
            owner_id: The doctor saving the record.
            details: Patient identity and demographics (overwrites the stored ones).
            measurements: The measurement set for this assessment.
            metrics: Derived metrics, stored for display only.
            patient_id: Existing patient id to update. A new id is generated
                when omitted.
            narrative: Optional AI summary for this assessment.

        Returns:
            The patient and assessment ids.

        Raises:
            OwnershipError: If ``patient_id`` belongs to another doctor.
            RepositoryError: If the write fails; nothing is persisted.
        """
        conn = self._db.connection
        pid = patient_id or self._new_id()
        now = self._now_iso()
        identity = {
            "first_name": details.first_name,
            "last_name": details.last_name,
            "birth_date": details.birth_date,
        }

        existing = self.check_writable(owner_id, pid)

        assessment_id = self._new_id()
        try:
            if existing is None:
                conn.execute(
                    """INSERT INTO patients (id, user_id, identity_enc, gender, created_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (pid, owner_id, self._enc.encrypt(identity), details.gender, now),
                )
            else:
                conn.execute(
                    "UPDATE patients SET identity_enc = ?, gender = ? WHERE id = ? AND user_id = ?",
                    (self._enc.encrypt(identity), details.gender, pid, owner_id),
                )

            conn.execute(
                """INSERT INTO assessments (
                    id, patient_id, measurements_enc, narrative_enc,
                    bmi, homa_ir, tg_hdl_ratio, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    assessment_id,
                    pid,
                    self._enc.encrypt(measurements.to_dict()),
                    self._enc.encrypt(narrative),
                    metrics.bmi,
                    metrics.homa_ir,
                    metrics.tg_hdl_ratio,
                    now,
                ),
            )
            conn.commit()
        except (sqlite3.Error, EncryptionError) as exc:
            conn.rollback()
            raise RepositoryError(f"Failed to save assessment: {exc}") from exc

        logger.info(
            "Saved assessment %s for patient %s (owner=%s, new_patient=%s)",
            assessment_id, pid, owner_id, existing is None,
        )
        return SaveResult(
            patient_id=pid,
            assessment_id=assessment_id,
            created_patient=existing is None,
        )

    def check_writable(self, owner_id: str, patient_id: str) -> sqlite3.Row | None:
        """Return the existing patient row, or None when ``patient_id`` is unused.

        Raises:
            OwnershipError: If the patient belongs to another doctor.
        """
        existing = self._db.connection.execute(
            "SELECT user_id FROM patients WHERE id = ?", (patient_id,)
        ).fetchone()
        if existing is not None and existing["user_id"] != owner_id:
            logger.warning("Rejected save on patient %s by non-owner %s", patient_id, owner_id)
            raise OwnershipError(f"Patient {patient_id} belongs to another user")
        return existing

    def delete_patient(self, owner_id: str, patient_id: str) -> bool:
        """Delete a patient and all their assessments.

        Returns:
            True if the patient existed for this owner and was deleted.
        """
        conn = self._db.connection
        conn.execute(
            """DELETE FROM assessments WHERE patient_id IN
               (SELECT id FROM patients WHERE id = ? AND user_id = ?)""",
            (patient_id, owner_id),
        )
        cursor = conn.execute(
            "DELETE FROM patients WHERE id = ? AND user_id = ?", (patient_id, owner_id)
        )
        conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted patient %s (owner=%s)", patient_id, owner_id)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_patient(self, owner_id: str, patient_id: str) -> PatientRecord | None:
        """Return a patient with their latest assessment, or None if not visible."""
        row = self._db.connection.execute(
            _LATEST_ASSESSMENT_JOIN + " WHERE p.id = ? AND p.user_id = ?",
            (patient_id, owner_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_patient(row)

    def list_patients(self, owner_id: str) -> list[PatientRecord]:
        """List a doctor's patients, sorted by last name then first name."""
        rows = self._db.connection.execute(
            _LATEST_ASSESSMENT_JOIN + " WHERE p.user_id = ?", (owner_id,)
        ).fetchall()
        patients = [self._row_to_patient(row) for row in rows]
        # Names are encrypted, so sorting happens after decryption.
        patients.sort(
            key=lambda p: (p.details.last_name.casefold(), p.details.first_name.casefold())
        )
        return patients

    def load_latest_assessment(
        self, owner_id: str, patient_id: str
    ) -> StoredAssessment | None:
        """Return the newest assessment of a patient, or None if not found."""
        history = self.get_assessment_history(owner_id, patient_id, limit=1)
        return history[0] if history else None

    def get_assessment_history(
        self,
        owner_id: str,
        patient_id: str,
        *,
        limit: int = 20,
    ) -> list[StoredAssessment]:
        """Return a patient's assessments, newest first."""
        rows = self._db.connection.execute(
            """SELECT a.* FROM assessments a
               JOIN patients p ON p.id = a.patient_id
               WHERE a.patient_id = ? AND p.user_id = ?
               ORDER BY a.created_at DESC, a.rowid DESC
               LIMIT ?""",
            (patient_id, owner_id, limit),
        ).fetchall()
        return [
            self._build_assessment(
                assessment_id=row["id"],
                patient_id=row["patient_id"],
                measurements_enc=row["measurements_enc"],
                narrative_enc=row["narrative_enc"],
                bmi=row["bmi"],
                homa_ir=row["homa_ir"],
                tg_hdl_ratio=row["tg_hdl_ratio"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def count_patients(self, owner_id: str | None = None) -> int:
        """Count patients, optionally for a single owner."""
        conn = self._db.connection
        if owner_id is None:
            row = conn.execute("SELECT COUNT(*) FROM patients").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM patients WHERE user_id = ?", (owner_id,)
            ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_assessment(
        self,
        *,
        assessment_id: str,
        patient_id: str,
        measurements_enc: str,
        narrative_enc: str | None,
        bmi: float | None,
        homa_ir: float | None,
        tg_hdl_ratio: float | None,
        created_at: str,
    ) -> StoredAssessment:
        measurements: dict[str, Any] = self._enc.decrypt(measurements_enc) or {}
        return StoredAssessment(
            id=assessment_id,
            patient_id=patient_id,
            measurements=MeasurementInput(**measurements),
            stored_metrics=DerivedMetrics(
                bmi=bmi or 0.0,
                homa_ir=homa_ir or 0.0,
                tg_hdl_ratio=tg_hdl_ratio or 0.0,
            ),
            narrative=self._enc.decrypt(narrative_enc),
            created_at=created_at,
        )

    def _row_to_patient(self, row: Any) -> PatientRecord:
        identity = self._enc.decrypt(row["identity_enc"]) or {}
        latest = None
        if row["assessment_id"] is not None:
            latest = self._build_assessment(
                assessment_id=row["assessment_id"],
                patient_id=row["id"],
                measurements_enc=row["measurements_enc"],
                narrative_enc=row["narrative_enc"],
                bmi=row["bmi"],
                homa_ir=row["homa_ir"],
                tg_hdl_ratio=row["tg_hdl_ratio"],
                created_at=row["assessed_at"],
            )
        return PatientRecord(
            id=row["id"],
            user_id=row["user_id"],
            details=PatientDetails(
                first_name=identity.get("first_name", ""),
                last_name=identity.get("last_name", ""),
                birth_date=identity.get("birth_date", ""),
                gender=row["gender"],
            ),
            created_at=row["created_at"],
            latest=latest,
        )
