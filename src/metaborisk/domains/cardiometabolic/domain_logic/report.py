"""JSON-ready report bundle for a patient's latest assessment.

Metrics are always recomputed from the stored raw measurements; the copies
stored next to each assessment are for list display only.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from metaborisk.core.llm.client import NARRATIVE_UNAVAILABLE
from metaborisk.core.storage.models import PatientRecord, StoredAssessment
from metaborisk.domains.cardiometabolic.domain_logic.calculations import compute_metrics
from metaborisk.domains.cardiometabolic.domain_logic.interpretation import interpret_all
from metaborisk.domains.cardiometabolic.domain_logic.narrative_prompt import compute_age

DISCLAIMER = (
    "Questo referto è uno strumento di supporto e non sostituisce "
    "il giudizio clinico del medico."
)


def build_assessment_payload(assessment: StoredAssessment) -> dict[str, Any]:
    """Measurements, recomputed metrics and interpretations for one snapshot."""
    metrics = compute_metrics(assessment.measurements)
    interpretation = interpret_all(metrics)
    return {
        "assessment_id": assessment.id,
        "assessed_at": assessment.created_at,
        "measurements": assessment.measurements.to_dict(),
        "metrics": metrics.as_dict(),
        "interpretation": interpretation.to_dict(),
        "narrative": assessment.narrative or NARRATIVE_UNAVAILABLE,
        "narrative_available": bool(assessment.narrative),
    }


def build_report_payload(
    record: PatientRecord,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Build the structured report for a patient.

    A patient without any assessment yields ``"assessment": None``.
    """
    today = today or date.today()
    return {
        "patient": {
            "id": record.id,
            **record.details.to_dict(),
            "age": compute_age(record.details.birth_date, today),
        },
        "assessment": (
            build_assessment_payload(record.latest) if record.latest is not None else None
        ),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "disclaimer": DISCLAIMER,
    }
