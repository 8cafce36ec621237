"""MCP Prompts — pre-built interaction templates for the clinic workflow."""

from __future__ import annotations

from fastmcp import FastMCP


def register_clinical_prompts(mcp: FastMCP) -> None:
    """Register cardiometabolic MCP prompts."""

    @mcp.prompt()
    def new_patient_assessment_prompt() -> str:
        """Prompt template for assessing and filing a new patient."""
        return """Vorrei valutare un nuovo paziente. Per favore:

1. Chiedimi nome, cognome, data di nascita e sesso
2. Chiedimi peso, altezza, glicemia, insulina, trigliceridi e HDL
3. Calcola BMI, HOMA-IR e rapporto TG/HDL con evaluate_risk
4. Mostrami le interpretazioni e, se confermo, salva il paziente con save_patient"""

    @mcp.prompt()
    def follow_up_review_prompt(patient_name: str = "il paziente") -> str:
        """Prompt template for reviewing how a patient's metrics evolved."""
        return f"""Rivediamo l'andamento di {patient_name}. Vorrei:

1. Trovare il paziente con list_patients
2. Confrontare le valutazioni con get_assessment_history
3. Evidenziare i parametri migliorati o peggiorati
4. Generare una sintesi clinica aggiornata con generate_clinical_summary"""
