"""Cardiometabolic risk models: measurement inputs, derived metrics, interpretations."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

METRIC_NAMES = ["bmi", "homa_ir", "tg_hdl_ratio"]

# HOMA-IR divisor for glucose in mg/dL and insulin in uIU/mL
HOMA_DIVISOR = 405

# Placeholder used wherever a value is missing in human-facing text
MISSING_PLACEHOLDER = "N/D"

GENDERS = ("M", "F")


class MeasurementValidationError(ValueError):
    """Raised when boundary input cannot be turned into a valid record."""


class RiskStatus(str, Enum):
    """Qualitative risk status, ordered from lowest to highest severity."""

    OTTIMO = "Ottimo"
    BUONO = "Buono"
    ATTENZIONE = "Attenzione"
    RISCHIO_ELEVATO = "Rischio Elevato"

    @property
    def tier(self) -> int:
        return _STATUS_TIERS[self]


_STATUS_TIERS = {
    RiskStatus.OTTIMO: 0,
    RiskStatus.BUONO: 1,
    RiskStatus.ATTENZIONE: 2,
    RiskStatus.RISCHIO_ELEVATO: 3,
}


# ---------------------------------------------------------------------------
# Boundary helpers
# ---------------------------------------------------------------------------

def _parse_number(
    data: dict[str, Any],
    key: str,
    *,
    required: bool = True,
    allow_zero: bool = True,
) -> float | None:
    raw = data.get(key)
    if raw is None or raw == "":
        if required:
            raise MeasurementValidationError(f"Missing required measurement: {key}")
        return None
    if isinstance(raw, bool):
        raise MeasurementValidationError(f"Measurement {key} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise MeasurementValidationError(f"Measurement {key} must be a number") from exc
    if not math.isfinite(value):
        raise MeasurementValidationError(f"Measurement {key} must be finite")
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise MeasurementValidationError(f"Measurement {key} must be {bound}")
    return value


# ---------------------------------------------------------------------------
# Input types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MeasurementInput:
    """One set of anthropometric and lab measurements for a patient.

    Units: weight/ideal_weight kg, height cm, glucose mg/dL, insulin uIU/mL,
    triglycerides mg/dL, hdl mg/dL.
    """

    weight: float
    height: float
    glucose: float
    insulin: float
    triglycerides: float
    hdl: float
    ideal_weight: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeasurementInput:
        """Build a validated measurement set from loosely-typed input.

        Weight and height must be strictly positive; lab values may be zero
        (meaning "not measured"). An ideal weight of zero is treated as absent.

        Raises:
            MeasurementValidationError: If any value is missing, non-numeric,
                non-finite or out of range.
        """
        ideal = _parse_number(data, "ideal_weight", required=False)
        return cls(
            weight=_parse_number(data, "weight", allow_zero=False),
            height=_parse_number(data, "height", allow_zero=False),
            glucose=_parse_number(data, "glucose"),
            insulin=_parse_number(data, "insulin"),
            triglycerides=_parse_number(data, "triglycerides"),
            hdl=_parse_number(data, "hdl"),
            ideal_weight=ideal or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "weight": self.weight,
            "height": self.height,
            "ideal_weight": self.ideal_weight,
            "glucose": self.glucose,
            "insulin": self.insulin,
            "triglycerides": self.triglycerides,
            "hdl": self.hdl,
        }


@dataclass(frozen=True)
class PatientDetails:
    """Patient identity and demographics."""

    first_name: str
    last_name: str
    birth_date: str  # ISO 8601 date
    gender: str  # 'M' | 'F'

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatientDetails:
        """Build validated patient details.

        Raises:
            MeasurementValidationError: On blank names, a malformed birth date
                or an unknown gender code.
        """
        first_name = str(data.get("first_name") or "").strip()
        last_name = str(data.get("last_name") or "").strip()
        if not first_name or not last_name:
            raise MeasurementValidationError("Patient first and last name are required")

        birth_date = str(data.get("birth_date") or "").strip()
        try:
            date.fromisoformat(birth_date)
        except ValueError as exc:
            raise MeasurementValidationError(
                f"Invalid birth date {birth_date!r}; expected YYYY-MM-DD"
            ) from exc

        gender = str(data.get("gender") or "").strip().upper()
        if gender not in GENDERS:
            raise MeasurementValidationError("Gender must be 'M' or 'F'")

        return cls(
            first_name=first_name,
            last_name=last_name,
            birth_date=birth_date,
            gender=gender,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "birth_date": self.birth_date,
            "gender": self.gender,
        }


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DerivedMetrics:
    """Metrics computed from one measurement set.

    A value of ``0`` means either a computed zero or "no data" (zero or
    missing divisor). ``missing`` names the metrics that fell back to the
    sentinel so callers can tell the two apart.
    """

    bmi: float
    homa_ir: float
    tg_hdl_ratio: float
    missing: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, float]:
        return {
            "bmi": self.bmi,
            "homa_ir": self.homa_ir,
            "tg_hdl_ratio": self.tg_hdl_ratio,
        }


@dataclass(frozen=True)
class InterpretationResult:
    """Classification of a single derived metric."""

    value: float
    status: RiskStatus
    label: str
    description: str

    @property
    def tier(self) -> int:
        return self.status.tier

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "status": self.status.value,
            "tier": self.tier,
            "label": self.label,
            "description": self.description,
        }


@dataclass(frozen=True)
class RiskAssessment:
    """The three interpretations for one set of derived metrics."""

    bmi: InterpretationResult
    homa_ir: InterpretationResult
    tg_hdl_ratio: InterpretationResult
    missing: tuple[str, ...] = field(default=())

    def results(self) -> dict[str, InterpretationResult]:
        return {
            "bmi": self.bmi,
            "homa_ir": self.homa_ir,
            "tg_hdl_ratio": self.tg_hdl_ratio,
        }

    def _rated(self) -> list[InterpretationResult]:
        # Sentinel zeros say nothing about risk; with no data at all every
        # metric is kept so the overall status is still defined.
        present = [
            result for name, result in self.results().items() if name not in self.missing
        ]
        return present or list(self.results().values())

    @property
    def overall_tier(self) -> int:
        return max(result.tier for result in self._rated())

    @property
    def overall_status(self) -> RiskStatus:
        return max(
            (result.status for result in self._rated()),
            key=lambda status: status.tier,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": {name: result.to_dict() for name, result in self.results().items()},
            "overall_status": self.overall_status.value,
            "overall_tier": self.overall_tier,
            "missing_data": list(self.missing),
        }
