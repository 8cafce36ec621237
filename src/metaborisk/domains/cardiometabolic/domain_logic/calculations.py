"""Deterministic risk metric calculation: raw measurements -> BMI, HOMA-IR, TG/HDL.

Each function is pure and performs no validation. A zero or missing divisor
yields the ``0`` "no data" sentinel instead of an error.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal

from metaborisk.domains.cardiometabolic.domain_logic.risk_models import (
    HOMA_DIVISOR,
    DerivedMetrics,
    MeasurementInput,
)


def round_half_away(value: float, digits: int) -> float:
    """Round to ``digits`` decimals, halves away from zero.

    Works on the shortest decimal representation of ``value`` so that
    e.g. ``2.675`` rounds to ``2.68``. Non-finite values are returned as-is.
    """
    if not math.isfinite(value):
        return value
    exact = Decimal(repr(value))
    # Precision must cover every integer digit or quantize() overflows.
    context = Context(prec=max(28, exact.adjusted() + digits + 2))
    quantum = Decimal(1).scaleb(-digits)
    return float(exact.quantize(quantum, rounding=ROUND_HALF_UP, context=context))


def compute_bmi(weight: float | None, height_cm: float | None) -> float:
    """Body Mass Index, ``weight / (height_cm / 100) ** 2``, 1 decimal."""
    if height_cm is None or weight is None or height_cm <= 0:
        return 0.0
    height_m = height_cm / 100
    return round_half_away(weight / (height_m * height_m), 1)


def compute_homa(glucose: float | None, insulin: float | None) -> float:
    """HOMA-IR, ``glucose (mg/dL) * insulin (uIU/mL) / 405``, 2 decimals."""
    if not glucose or not insulin:
        return 0.0
    return round_half_away((glucose * insulin) / HOMA_DIVISOR, 2)


def compute_tg_hdl(triglycerides: float | None, hdl: float | None) -> float:
    """Triglyceride to HDL ratio, 2 decimals."""
    if not hdl:
        return 0.0
    return round_half_away((triglycerides or 0) / hdl, 2)


def compute_metrics(measurements: MeasurementInput) -> DerivedMetrics:
    """Compute all three derived metrics for a measurement set."""
    missing: list[str] = []
    if not measurements.height or measurements.height <= 0:
        missing.append("bmi")
    if not measurements.glucose or not measurements.insulin:
        missing.append("homa_ir")
    if not measurements.hdl:
        missing.append("tg_hdl_ratio")

    return DerivedMetrics(
        bmi=compute_bmi(measurements.weight, measurements.height),
        homa_ir=compute_homa(measurements.glucose, measurements.insulin),
        tg_hdl_ratio=compute_tg_hdl(measurements.triglycerides, measurements.hdl),
        missing=tuple(missing),
    )
