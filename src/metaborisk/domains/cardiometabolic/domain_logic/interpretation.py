"""Threshold-based interpretation of derived cardiometabolic metrics.

Breakpoints follow functional-medicine reference ranges. Every function is
total over the real line and boundaries are inclusive exactly as written:
HOMA-IR 1.9 is still "Buono", TG/HDL 3.8 is already "Rischio Elevato".
"""

from __future__ import annotations

from metaborisk.domains.cardiometabolic.domain_logic.risk_models import (
    DerivedMetrics,
    InterpretationResult,
    RiskAssessment,
    RiskStatus,
)

# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------

HOMA_OPTIMAL_BELOW = 1.0
HOMA_GOOD_UP_TO = 1.9
HOMA_CAUTION_UP_TO = 2.9

TG_HDL_OPTIMAL_BELOW = 2.0
TG_HDL_CAUTION_BELOW = 3.8

BMI_UNDERWEIGHT_BELOW = 18.5
BMI_NORMAL_BELOW = 25.0
BMI_OVERWEIGHT_BELOW = 30.0

# ---------------------------------------------------------------------------
# Descriptions
# ---------------------------------------------------------------------------

HOMA_DESCRIPTIONS = {
    RiskStatus.OTTIMO: "Sensibilità insulinica ottimale.",
    RiskStatus.BUONO: "Sensibilità insulinica nella norma, ma monitorare.",
    RiskStatus.ATTENZIONE: (
        "Insulino-resistenza precoce. Necessario intervento sullo stile di vita."
    ),
    RiskStatus.RISCHIO_ELEVATO: (
        "Insulino-resistenza significativa. Rischio cardiometabolico elevato."
    ),
}

TG_HDL_DESCRIPTIONS = {
    RiskStatus.OTTIMO: "Pattern lipidico ideale (LDL particelle grandi).",
    RiskStatus.ATTENZIONE: "Rischio moderato. Monitorare assunzione di carboidrati.",
    RiskStatus.RISCHIO_ELEVATO: (
        "Pattern lipidico aterogenico (LDL particelle piccole e dense)."
    ),
}


def _result(value: float, status: RiskStatus, description: str, label: str = "") -> InterpretationResult:
    return InterpretationResult(
        value=value,
        status=status,
        label=label or status.value,
        description=description,
    )


def interpret_homa(value: float) -> InterpretationResult:
    """Classify a HOMA-IR score."""
    if value < HOMA_OPTIMAL_BELOW:
        status = RiskStatus.OTTIMO
    elif value <= HOMA_GOOD_UP_TO:
        status = RiskStatus.BUONO
    elif value <= HOMA_CAUTION_UP_TO:
        status = RiskStatus.ATTENZIONE
    else:
        status = RiskStatus.RISCHIO_ELEVATO
    return _result(value, status, HOMA_DESCRIPTIONS[status])


def interpret_tg_hdl(value: float) -> InterpretationResult:
    """Classify a triglyceride/HDL ratio. There is no "Buono" tier."""
    if value < TG_HDL_OPTIMAL_BELOW:
        status = RiskStatus.OTTIMO
    elif value < TG_HDL_CAUTION_BELOW:
        status = RiskStatus.ATTENZIONE
    else:
        status = RiskStatus.RISCHIO_ELEVATO
    return _result(value, status, TG_HDL_DESCRIPTIONS[status])


def interpret_bmi(value: float) -> InterpretationResult:
    """Classify a BMI. Underweight and overweight share the "Attenzione" status."""
    if value < BMI_UNDERWEIGHT_BELOW:
        return _result(value, RiskStatus.ATTENZIONE, "Sottopeso", "Sottopeso")
    if value < BMI_NORMAL_BELOW:
        return _result(value, RiskStatus.OTTIMO, "Normopeso", "Normopeso")
    if value < BMI_OVERWEIGHT_BELOW:
        return _result(value, RiskStatus.ATTENZIONE, "Sovrappeso", "Sovrappeso")
    return _result(value, RiskStatus.RISCHIO_ELEVATO, "Obesità", "Obesità")


def interpret_all(metrics: DerivedMetrics) -> RiskAssessment:
    """Interpret every derived metric of a measurement set."""
    return RiskAssessment(
        bmi=interpret_bmi(metrics.bmi),
        homa_ir=interpret_homa(metrics.homa_ir),
        tg_hdl_ratio=interpret_tg_hdl(metrics.tg_hdl_ratio),
        missing=metrics.missing,
    )
