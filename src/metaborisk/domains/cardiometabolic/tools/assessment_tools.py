"""MCP tools for risk evaluation and the per-doctor patient archive.

Every tool requires a live session token; ``evaluate_risk`` is the only one
that stores nothing. Patient data leaves the server only through
``generate_clinical_summary`` and ``save_patient(generate_narrative=True)``,
and those calls are audit-logged as disclosures.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from metaborisk.core.audit.logger import AuditLogger
    from metaborisk.core.auth.guard import AccessGuard
    from metaborisk.core.llm.client import NarrativeClient, NarrativeResult
    from metaborisk.core.storage.repository import PatientRepository

from metaborisk.core.auth.service import AccountError
from metaborisk.core.storage.repository import OwnershipError, RepositoryError
from metaborisk.domains.cardiometabolic.domain_logic.calculations import compute_metrics
from metaborisk.domains.cardiometabolic.domain_logic.interpretation import interpret_all
from metaborisk.domains.cardiometabolic.domain_logic.narrative_prompt import (
    build_clinical_summary_prompt,
)
from metaborisk.domains.cardiometabolic.domain_logic.report import (
    build_assessment_payload,
    build_report_payload,
)
from metaborisk.domains.cardiometabolic.domain_logic.risk_models import (
    MeasurementInput,
    MeasurementValidationError,
    PatientDetails,
)

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def _not_found(patient_id: str) -> str:
    return json.dumps({
        "status": "not_found",
        "patient_id": patient_id,
        "message": "Paziente non trovato.",
    })


def register_assessment_tools(
    mcp: FastMCP,
    guard: AccessGuard,
    repository: PatientRepository,
    narrative_client: NarrativeClient,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register evaluation and patient archive tools on the MCP server."""

    async def _narrate(
        tool_name: str,
        user_id: str,
        patient_id: str | None,
        details: PatientDetails,
        measurements: MeasurementInput,
    ) -> NarrativeResult:
        """Generate a narrative and audit the disclosure. Never raises."""
        start_time = time.monotonic()
        prompt = build_clinical_summary_prompt(
            details, measurements, compute_metrics(measurements)
        )
        result = await narrative_client.generate(prompt)
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name=tool_name,
                tool_input={"patient_id": patient_id or ""},
                user_id=user_id,
                patient_id=patient_id,
                llm_provider=result.provider,
                llm_disclosed=True,
                duration_ms=(time.monotonic() - start_time) * 1000,
                status="success" if result.available else "failure",
                error_type=result.error_type,
                metadata={"flags": result.flags} if result.flags else None,
            )
        return result

    @mcp.tool
    async def evaluate_risk(
        ctx: Context,
        session_token: str,
        measurements: dict[str, Any],
    ) -> str:
        """Compute BMI, HOMA-IR and TG/HDL and classify each into a risk tier.

        Nothing is stored. A metric whose inputs are zero or missing is
        reported as 0 and listed under ``missing_data``.

        Args:
            session_token: Token returned by ``login``.
            measurements: weight (kg), height (cm), glucose (mg/dL),
                insulin (uIU/mL), triglycerides (mg/dL), hdl (mg/dL) and
                optionally ideal_weight (kg).
        """
        try:
            guard.current_account(session_token)
            values = MeasurementInput.from_dict(measurements or {})
        except (AccountError, MeasurementValidationError) as exc:
            return _error(str(exc))

        metrics = compute_metrics(values)
        assessment = interpret_all(metrics)
        return json.dumps({
            "status": "ok",
            "measurements": values.to_dict(),
            **assessment.to_dict(),
        })

    @mcp.tool
    async def save_patient(
        ctx: Context,
        session_token: str,
        patient: dict[str, Any],
        measurements: dict[str, Any],
        patient_id: str = "",
        generate_narrative: bool = False,
    ) -> str:
        """Create or update a patient and append a new assessment.

        When ``generate_narrative`` is true a clinical summary is requested
        from the configured model first; if that fails the record is saved
        anyway with the narrative marked unavailable.

        Args:
            session_token: Token returned by ``login``.
            patient: first_name, last_name, birth_date (YYYY-MM-DD), gender (M/F).
            measurements: Same fields as ``evaluate_risk``.
            patient_id: Existing patient to update; empty creates a new patient.
            generate_narrative: Also generate the AI clinical summary.
        """
        try:
            account = guard.current_account(session_token)
            details = PatientDetails.from_dict(patient or {})
            values = MeasurementInput.from_dict(measurements or {})
        except (AccountError, MeasurementValidationError) as exc:
            return _error(str(exc))

        metrics = compute_metrics(values)

        narrative: NarrativeResult | None = None
        if generate_narrative:
            if patient_id:
                try:
                    repository.check_writable(account.id, patient_id)
                except OwnershipError:
                    return _error("Paziente non accessibile.")
            narrative = await _narrate(
                "save_patient", account.id, patient_id or None, details, values
            )

        try:
            saved = repository.save_assessment(
                account.id,
                details,
                values,
                metrics,
                patient_id=patient_id or None,
                narrative=narrative.text if narrative is not None else None,
            )
        except OwnershipError:
            return _error("Paziente non accessibile.")
        except RepositoryError as exc:
            logger.error("Failed to save patient for account %s: %s", account.id, exc)
            return _error("Salvataggio non riuscito.")

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="save_patient",
                tool_input={"patient_id": saved.patient_id},
                user_id=account.id,
                patient_id=saved.patient_id,
            )

        response: dict[str, Any] = {
            "status": "saved",
            "patient_id": saved.patient_id,
            "assessment_id": saved.assessment_id,
            "created": saved.created_patient,
            **interpret_all(metrics).to_dict(),
        }
        if narrative is not None:
            response["narrative"] = narrative.display_text
            response["narrative_available"] = narrative.available
        return json.dumps(response)

    @mcp.tool
    async def list_patients(
        ctx: Context,
        session_token: str,
    ) -> str:
        """List your patients with their latest stored metrics, by surname.

        Args:
            session_token: Token returned by ``login``.
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))

        patients = []
        for record in repository.list_patients(account.id):
            entry = record.to_dict()
            # The narrative can be long; the report tool returns it in full.
            entry.pop("ai_analysis", None)
            if record.latest is not None:
                assessment = interpret_all(compute_metrics(record.latest.measurements))
                entry["overall_status"] = assessment.overall_status.value
            patients.append(entry)

        return json.dumps({"status": "ok", "count": len(patients), "patients": patients})

    @mcp.tool
    async def get_patient_report(
        ctx: Context,
        session_token: str,
        patient_id: str,
    ) -> str:
        """Full report for a patient: details, latest measurements, interpretations, narrative.

        Metrics are recomputed from the stored raw measurements.

        Args:
            session_token: Token returned by ``login``.
            patient_id: The patient's id.
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))

        record = repository.get_patient(account.id, patient_id)
        if record is None:
            return _not_found(patient_id)

        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name="get_patient_report",
                tool_input={"patient_id": patient_id},
                user_id=account.id,
                patient_id=patient_id,
            )
        return json.dumps({"status": "ok", "report": build_report_payload(record)})

    @mcp.tool
    async def get_assessment_history(
        ctx: Context,
        session_token: str,
        patient_id: str,
        limit: int = 20,
    ) -> str:
        """All assessments of a patient, newest first.

        Args:
            session_token: Token returned by ``login``.
            patient_id: The patient's id.
            limit: Maximum number of assessments (1-100, default 20).
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))

        if limit < 1 or limit > MAX_HISTORY_LIMIT:
            return _error(f"limit must be between 1 and {MAX_HISTORY_LIMIT}.")

        history = repository.get_assessment_history(account.id, patient_id, limit=limit)
        if not history and repository.get_patient(account.id, patient_id) is None:
            return _not_found(patient_id)

        return json.dumps({
            "status": "ok",
            "patient_id": patient_id,
            "count": len(history),
            "assessments": [build_assessment_payload(entry) for entry in history],
        })

    @mcp.tool
    async def generate_clinical_summary(
        ctx: Context,
        session_token: str,
        patient_id: str,
    ) -> str:
        """Generate an AI clinical summary for the patient's latest assessment.

        Patient data is sent to the configured external model. A successful
        summary is stored as a new assessment snapshot; on failure nothing is
        stored and the fallback text is returned.

        Args:
            session_token: Token returned by ``login``.
            patient_id: The patient's id.
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))

        record = repository.get_patient(account.id, patient_id)
        if record is None:
            return _not_found(patient_id)
        if record.latest is None:
            return _error("Nessuna valutazione disponibile per questo paziente.")

        measurements = record.latest.measurements
        result = await _narrate(
            "generate_clinical_summary", account.id, patient_id, record.details, measurements
        )

        response: dict[str, Any] = {
            "status": "ok",
            "patient_id": patient_id,
            "narrative": result.display_text,
            "narrative_available": result.available,
            "provider": result.provider,
        }
        if result.flags:
            response["flags"] = result.flags

        if result.available:
            try:
                saved = repository.save_assessment(
                    account.id,
                    record.details,
                    measurements,
                    compute_metrics(measurements),
                    patient_id=patient_id,
                    narrative=result.text,
                )
            except RepositoryError as exc:
                logger.error("Failed to store summary for patient %s: %s", patient_id, exc)
                response["stored"] = False
            else:
                response["stored"] = True
                response["assessment_id"] = saved.assessment_id

        return json.dumps(response)

    @mcp.tool
    async def delete_patient(
        ctx: Context,
        session_token: str,
        patient_id: str,
    ) -> str:
        """Permanently delete a patient and all of their assessments.

        Args:
            session_token: Token returned by ``login``.
            patient_id: The patient's id.
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))

        start_time = time.monotonic()
        deleted = repository.delete_patient(account.id, patient_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if not deleted:
            return _not_found(patient_id)

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_patient",
                user_id=account.id,
                patient_id=patient_id,
                count=1,
            )
        return json.dumps({
            "status": "deleted",
            "patient_id": patient_id,
            "duration_ms": round(elapsed_ms, 1),
        })
