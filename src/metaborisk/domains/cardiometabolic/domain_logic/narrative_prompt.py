"""Deterministic prompt construction for the AI clinical summary.

The prompt is written in Italian and asks for a short "Valutazione Clinica e
Conclusioni" section: a metabolic synthesis, exactly 3 prioritised
recommendations, plain paragraphs and at most 200 words.

Age is computed as ``current year - birth year``. This is a coarse
approximation (it can overstate the age by one year before the birthday)
kept on purpose so that summaries stay comparable with earlier reports.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from metaborisk.domains.cardiometabolic.domain_logic.interpretation import (
    interpret_bmi,
    interpret_homa,
    interpret_tg_hdl,
)
from metaborisk.domains.cardiometabolic.domain_logic.risk_models import MISSING_PLACEHOLDER

RECOMMENDATION_COUNT = 3
MAX_SUMMARY_WORDS = 200


def _field(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def _text(value: Any) -> str:
    if value is None:
        return MISSING_PLACEHOLDER
    text = str(value).strip()
    return text or MISSING_PLACEHOLDER


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _number(value: Any) -> str:
    number = _as_number(value)
    if number is None:
        return MISSING_PLACEHOLDER
    if number.is_integer():
        return str(int(number))
    return repr(number)


def compute_age(birth_date: Any, today: date | None = None) -> int | None:
    """Return ``today.year - birth year``, or None if the birth date is unusable."""
    if isinstance(birth_date, date):
        birth_year = birth_date.year
    else:
        try:
            birth_year = date.fromisoformat(str(birth_date).strip()[:10]).year
        except ValueError:
            return None
    return (today or date.today()).year - birth_year


def _interpretation(value: Any, interpret) -> str:
    number = _as_number(value)
    if number is None:
        return MISSING_PLACEHOLDER
    return interpret(number).description


def build_clinical_summary_prompt(
    patient: Any,
    measurements: Any,
    metrics: Any,
    *,
    today: date | None = None,
) -> str:
    """Assemble the clinical summary prompt for a patient.

    Args:
        patient: Object or mapping with ``first_name``, ``last_name``,
            ``gender`` and ``birth_date``.
        measurements: Object or mapping with ``glucose``, ``insulin``,
            ``triglycerides`` and ``hdl``.
        metrics: Object or mapping with ``bmi``, ``homa_ir`` and ``tg_hdl_ratio``.
        today: Reference date for the age computation (defaults to today).

    Returns:
        The prompt text. Missing or malformed fields are rendered as ``N/D``;
        this function does not raise on bad data.
    """
    age = compute_age(_field(patient, "birth_date"), today)
    name = " ".join(
        part
        for part in (_field(patient, "first_name"), _field(patient, "last_name"))
        if part is not None and str(part).strip()
    )

    bmi = _field(metrics, "bmi")
    homa_ir = _field(metrics, "homa_ir")
    tg_hdl_ratio = _field(metrics, "tg_hdl_ratio")

    lines = [
        "Sei un medico esperto in medicina metabolica e funzionale.",
        'Scrivi una breve "Valutazione Clinica e Conclusioni" per un referto medico '
        "basato sui seguenti dati.",
        "Usa un tono professionale, medico, formale e in italiano.",
        "",
        "Dati Paziente:",
        f"- Nome: {_text(name)}",
        f"- Sesso: {_text(_field(patient, 'gender'))}",
        f"- Età: {_text(age)} anni",
        f"- BMI: {_number(bmi)} ({_interpretation(bmi, interpret_bmi)})",
        "",
        "Dati Laboratorio:",
        f"- Glicemia: {_number(_field(measurements, 'glucose'))} mg/dL",
        f"- Insulina: {_number(_field(measurements, 'insulin'))} uIU/mL",
        f"- Trigliceridi: {_number(_field(measurements, 'triglycerides'))} mg/dL",
        f"- HDL: {_number(_field(measurements, 'hdl'))} mg/dL",
        "",
        "Risultati Calcolati:",
        f"- HOMA-IR: {_number(homa_ir)} "
        f"(Interpretazione: {_interpretation(homa_ir, interpret_homa)})",
        f"- Rapporto TG/HDL: {_number(tg_hdl_ratio)} "
        f"(Interpretazione: {_interpretation(tg_hdl_ratio, interpret_tg_hdl)})",
        "",
        "Istruzioni per l'output:",
        "1. Analizza sinteticamente lo stato metabolico "
        "(resistenza insulinica, rischio cardiovascolare lipidico).",
        f"2. Fornisci {RECOMMENDATION_COUNT} raccomandazioni cliniche/nutrizionali "
        "prioritarie basate sui valori alterati (se presenti).",
        "3. Non usare markdown o bold, solo testo piano formattato in paragrafi chiari.",
        "4. Sii diretto e costruttivo.",
        f"5. Lunghezza massima {MAX_SUMMARY_WORDS} parole.",
    ]
    return "\n".join(lines)
