"""Data models for the clinic persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from metaborisk.domains.cardiometabolic.domain_logic.risk_models import (
    DerivedMetrics,
    MeasurementInput,
    PatientDetails,
)


@dataclass
class Account:
    """A doctor or administrator account. The password hash never leaves storage."""

    id: str
    username: str
    role: str  # 'admin' | 'user'
    is_active: bool = True
    expires_at: str | None = None  # ISO 8601, None = no expiry
    created_at: str = ""
    first_name: str = ""
    last_name: str = ""
    title: str = ""
    specialization: str = ""
    email: str = ""
    phone: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "is_active": self.is_active,
            "expires_at": self.expires_at,
            "created_at": self.created_at,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "title": self.title,
            "specialization": self.specialization,
            "email": self.email,
            "phone": self.phone,
        }


@dataclass
class StoredAssessment:
    """One persisted assessment snapshot, decrypted."""

    id: str
    patient_id: str
    measurements: MeasurementInput
    # Stored copy for display; reports recompute from ``measurements``
    stored_metrics: DerivedMetrics
    narrative: str | None = None
    created_at: str = ""


@dataclass
class PatientRecord:
    """A patient with their most recent assessment (if any)."""

    id: str
    user_id: str
    details: PatientDetails
    created_at: str = ""
    latest: StoredAssessment | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": self.created_at,
            **self.details.to_dict(),
        }
        if self.latest is not None:
            data.update(self.latest.measurements.to_dict())
            data.update(self.latest.stored_metrics.as_dict())
            data["ai_analysis"] = self.latest.narrative
            data["assessed_at"] = self.latest.created_at
        return data


@dataclass
class SaveResult:
    """Identifiers produced by saving an assessment."""

    patient_id: str
    assessment_id: str
    created_patient: bool = False
