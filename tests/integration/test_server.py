"""Integration tests for the MetaboRisk MCP server."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from fastmcp import Client

from metaborisk.core.llm.providers.mock import MockProvider
from metaborisk.core.config.settings import get_settings
from metaborisk.core.server.app import create_app
from metaborisk.core.server.services import build_services


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _call(client: Client, name: str, arguments: dict[str, Any] | None = None) -> dict:
    result = await client.call_tool(name, arguments or {})
    # Newer fastmcp wraps content blocks in a CallToolResult.
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


async def _login(client: Client, username: str, password: str) -> str:
    payload = await _call(client, "login", {"username": username, "password": password})
    assert payload["status"] == "ok", payload
    return payload["session_token"]


async def _register_and_login(client: Client, username: str) -> str:
    payload = await _call(client, "register", {
        "username": username,
        "password": "secret123",
        "first_name": "Mario",
        "last_name": "Rossi",
    })
    assert payload["status"] == "ok", payload
    return await _login(client, username, "secret123")


PATIENT = {
    "first_name": "Giulia",
    "last_name": "Neri",
    "birth_date": "1985-09-20",
    "gender": "F",
}

MEASUREMENTS = {
    "weight": 70,
    "height": 175,
    "glucose": 90,
    "insulin": 10,
    "triglycerides": 150,
    "hdl": 50,
}

ALL_EXPECTED_TOOLS = [
    "health_check",
    "login",
    "logout",
    "register",
    "get_profile",
    "update_profile",
    "evaluate_risk",
    "save_patient",
    "list_patients",
    "get_patient_report",
    "get_assessment_history",
    "generate_clinical_summary",
    "delete_patient",
    "admin_list_users",
    "admin_create_user",
    "admin_update_user_status",
    "admin_change_password",
    "audit_summary",
]


@pytest.fixture
def mcp(monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass")
    return create_app()


@pytest.fixture
def client(mcp):
    return Client(mcp)


def test_server_lists_all_tools(client):
    async def _check():
        async with client:
            tool_names = {t.name for t in await client.list_tools()}
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check(client):
    async def _check():
        async with client:
            payload = await _call(client, "health_check")
            assert payload["status"] == "ok"
            assert payload["storage"] == "in_memory"
            assert payload["llm_provider"] == "mock"
            assert payload["patients_stored"] == 0
    _run(_check())


def test_prompts_registered(client):
    async def _check():
        async with client:
            names = {p.name for p in await client.list_prompts()}
            assert "new_patient_assessment_prompt" in names
            assert "follow_up_review_prompt" in names
    _run(_check())


class TestEvaluateRisk:
    def test_reference_scenario(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "evaluate_risk", {
                    "session_token": token,
                    "measurements": MEASUREMENTS,
                })
                assert payload["status"] == "ok"
                metrics = payload["metrics"]
                assert metrics["bmi"]["value"] == 22.9
                assert metrics["bmi"]["label"] == "Normopeso"
                assert metrics["homa_ir"]["value"] == 2.22
                assert metrics["homa_ir"]["status"] == "Attenzione"
                assert metrics["tg_hdl_ratio"]["value"] == 3.0
                assert payload["overall_tier"] == 2
                assert payload["missing_data"] == []
        _run(_check())

    def test_requires_session(self, client):
        async def _check():
            async with client:
                payload = await _call(client, "evaluate_risk", {
                    "session_token": "bogus",
                    "measurements": MEASUREMENTS,
                })
                assert payload["status"] == "error"
                assert payload["message"] == "Sessione non valida o scaduta"
        _run(_check())

    def test_invalid_measurements(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "evaluate_risk", {
                    "session_token": token,
                    "measurements": {**MEASUREMENTS, "height": 0},
                })
                assert payload["status"] == "error"
                assert "height" in payload["message"]
        _run(_check())

    def test_zero_hdl_reported_missing(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "evaluate_risk", {
                    "session_token": token,
                    "measurements": {**MEASUREMENTS, "hdl": 0},
                })
                assert payload["metrics"]["tg_hdl_ratio"]["value"] == 0
                assert payload["missing_data"] == ["tg_hdl_ratio"]
        _run(_check())


class TestPatientArchive:
    def test_full_lifecycle(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")

                saved = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                })
                assert saved["status"] == "saved"
                assert saved["created"] is True
                patient_id = saved["patient_id"]

                listed = await _call(client, "list_patients", {"session_token": token})
                assert listed["count"] == 1
                assert listed["patients"][0]["last_name"] == "Neri"
                assert listed["patients"][0]["overall_status"] == "Attenzione"

                report = await _call(client, "get_patient_report", {
                    "session_token": token, "patient_id": patient_id,
                })
                assert report["status"] == "ok"
                assessment = report["report"]["assessment"]
                assert assessment["metrics"]["homa_ir"] == 2.22
                assert assessment["narrative"] == "Analisi AI non disponibile."

                summary = await _call(client, "generate_clinical_summary", {
                    "session_token": token, "patient_id": patient_id,
                })
                assert summary["narrative_available"] is True
                assert summary["stored"] is True
                assert summary["provider"] == "mock"

                history = await _call(client, "get_assessment_history", {
                    "session_token": token, "patient_id": patient_id,
                })
                assert history["count"] == 2
                assert history["assessments"][0]["narrative_available"] is True

                deleted = await _call(client, "delete_patient", {
                    "session_token": token, "patient_id": patient_id,
                })
                assert deleted["status"] == "deleted"

                gone = await _call(client, "get_patient_report", {
                    "session_token": token, "patient_id": patient_id,
                })
                assert gone["status"] == "not_found"
        _run(_check())

    def test_update_existing_patient(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                first = await _call(client, "save_patient", {
                    "session_token": token, "patient": PATIENT, "measurements": MEASUREMENTS,
                })
                second = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": PATIENT,
                    "measurements": {**MEASUREMENTS, "weight": 95},
                    "patient_id": first["patient_id"],
                })
                assert second["patient_id"] == first["patient_id"]
                assert second["created"] is False
                assert second["metrics"]["bmi"]["label"] == "Obesità"
        _run(_check())

    def test_invalid_patient_rejected(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": {**PATIENT, "gender": "X"},
                    "measurements": MEASUREMENTS,
                })
                assert payload["status"] == "error"
        _run(_check())

    def test_doctors_are_isolated(self, client):
        async def _check():
            async with client:
                token_a = await _register_and_login(client, "doc_a")
                token_b = await _register_and_login(client, "doc_b")
                saved = await _call(client, "save_patient", {
                    "session_token": token_a, "patient": PATIENT, "measurements": MEASUREMENTS,
                })
                patient_id = saved["patient_id"]

                listed = await _call(client, "list_patients", {"session_token": token_b})
                assert listed["count"] == 0

                report = await _call(client, "get_patient_report", {
                    "session_token": token_b, "patient_id": patient_id,
                })
                assert report["status"] == "not_found"

                overwrite = await _call(client, "save_patient", {
                    "session_token": token_b,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                    "patient_id": patient_id,
                })
                assert overwrite["status"] == "error"

                deleted = await _call(client, "delete_patient", {
                    "session_token": token_b, "patient_id": patient_id,
                })
                assert deleted["status"] == "not_found"
        _run(_check())

    def test_summary_without_patient(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "generate_clinical_summary", {
                    "session_token": token, "patient_id": "missing",
                })
                assert payload["status"] == "not_found"
        _run(_check())


class TestNarrativeFailure:
    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD", "adminpass")
        provider = MockProvider(error=ConnectionError("provider unreachable"))
        return Client(create_app(provider_override=provider))

    def test_save_succeeds_without_narrative(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                saved = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                    "generate_narrative": True,
                })
                assert saved["status"] == "saved"
                assert saved["narrative_available"] is False
                assert saved["narrative"] == "Analisi AI non disponibile."

                summary = await _call(client, "generate_clinical_summary", {
                    "session_token": token, "patient_id": saved["patient_id"],
                })
                assert summary["narrative_available"] is False
                assert "stored" not in summary

                history = await _call(client, "get_assessment_history", {
                    "session_token": token, "patient_id": saved["patient_id"],
                })
                assert history["count"] == 1
        _run(_check())


class TestArchiveWithServices:
    @pytest.fixture
    def provider(self):
        return MockProvider(response_content="Quadro metabolico da monitorare.")

    @pytest.fixture
    def services(self, provider):
        services = build_services(get_settings(), provider_override=provider)
        yield services
        services.close()

    @pytest.fixture
    def client(self, services):
        return Client(create_app(services_override=services))

    def test_foreign_patient_not_sent_to_model(self, client, provider, services):
        async def _check():
            async with client:
                token_a = await _register_and_login(client, "doc_a")
                token_b = await _register_and_login(client, "doc_b")
                saved = await _call(client, "save_patient", {
                    "session_token": token_a, "patient": PATIENT, "measurements": MEASUREMENTS,
                })

                overwrite = await _call(client, "save_patient", {
                    "session_token": token_b,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                    "patient_id": saved["patient_id"],
                    "generate_narrative": True,
                })
                assert overwrite["status"] == "error"
                assert provider.call_count == 0
                assert services.audit_logger.count_disclosures() == 0
        _run(_check())

    def test_narrative_on_new_explicit_id(self, client, provider):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                saved = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                    "patient_id": "p-new",
                    "generate_narrative": True,
                })
                assert saved["status"] == "saved"
                assert saved["patient_id"] == "p-new"
                assert saved["narrative_available"] is True
                assert provider.call_count == 1
        _run(_check())

    def test_list_status_recomputed_from_measurements(self, client, services):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                saved = await _call(client, "save_patient", {
                    "session_token": token, "patient": PATIENT, "measurements": MEASUREMENTS,
                })
                services.database.connection.execute(
                    "UPDATE assessments SET homa_ir = 0, tg_hdl_ratio = 0 WHERE id = ?",
                    (saved["assessment_id"],),
                )
                services.database.connection.commit()

                listed = await _call(client, "list_patients", {"session_token": token})
                report = await _call(client, "get_patient_report", {
                    "session_token": token, "patient_id": saved["patient_id"],
                })
                overall = report["report"]["assessment"]["interpretation"]["overall_status"]
                assert listed["patients"][0]["overall_status"] == overall == "Attenzione"
        _run(_check())


class TestAccounts:
    def test_login_errors(self, client):
        async def _check():
            async with client:
                payload = await _call(client, "login", {"username": "x", "password": "y"})
                assert payload == {"status": "error", "message": "Credenziali non valide"}
        _run(_check())

    def test_duplicate_registration(self, client):
        async def _check():
            async with client:
                await _register_and_login(client, "doc1")
                payload = await _call(client, "register", {
                    "username": "doc1", "password": "secret123",
                })
                assert payload["message"] == "Nome utente già in uso"
        _run(_check())

    def test_profile_update(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                profile = await _call(client, "get_profile", {"session_token": token})
                assert profile["account"]["title"] == "Dr."

                updated = await _call(client, "update_profile", {
                    "session_token": token, "specialization": "Endocrinologia",
                })
                assert updated["account"]["specialization"] == "Endocrinologia"
                assert updated["account"]["first_name"] == "Mario"
        _run(_check())

    def test_logout(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                out = await _call(client, "logout", {"session_token": token})
                assert out["logged_out"] is True
                payload = await _call(client, "get_profile", {"session_token": token})
                assert payload["status"] == "error"
        _run(_check())


class TestAdmin:
    def test_non_admin_denied(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                payload = await _call(client, "admin_list_users", {"session_token": token})
                assert payload["status"] == "error"
        _run(_check())

    def test_account_lifecycle(self, client):
        async def _check():
            async with client:
                admin_token = await _login(client, "admin", "adminpass")

                created = await _call(client, "admin_create_user", {
                    "session_token": admin_token,
                    "username": "doc2",
                    "password": "initial1",
                })
                assert created["status"] == "ok"
                user_id = created["account"]["id"]

                users = await _call(client, "admin_list_users", {"session_token": admin_token})
                assert {u["username"] for u in users["users"]} == {"admin", "doc2"}

                doc_token = await _login(client, "doc2", "initial1")

                status = await _call(client, "admin_update_user_status", {
                    "session_token": admin_token,
                    "user_id": user_id,
                    "is_active": False,
                })
                assert status["account"]["is_active"] is False

                denied = await _call(client, "get_profile", {"session_token": doc_token})
                assert denied["status"] == "error"

                login = await _call(client, "login", {"username": "doc2", "password": "initial1"})
                assert login["message"] == "Account disattivato"

                await _call(client, "admin_update_user_status", {
                    "session_token": admin_token,
                    "user_id": user_id,
                    "is_active": True,
                    "expires_at": "2000-01-01",
                })
                expired = await _call(
                    client, "login", {"username": "doc2", "password": "initial1"}
                )
                assert expired["message"] == "Abbonamento scaduto"

                reset = await _call(client, "admin_change_password", {
                    "session_token": admin_token,
                    "user_id": user_id,
                    "new_password": "changed1",
                })
                assert reset["status"] == "ok"

                missing = await _call(client, "admin_change_password", {
                    "session_token": admin_token,
                    "user_id": "missing",
                    "new_password": "changed1",
                })
                assert missing["message"] == "Utente non trovato"
        _run(_check())

    def test_audit_summary_counts_disclosures(self, client):
        async def _check():
            async with client:
                token = await _register_and_login(client, "doc1")
                saved = await _call(client, "save_patient", {
                    "session_token": token,
                    "patient": PATIENT,
                    "measurements": MEASUREMENTS,
                    "generate_narrative": True,
                })
                assert saved["narrative_available"] is True

                admin_token = await _login(client, "admin", "adminpass")
                summary = await _call(client, "audit_summary", {"session_token": admin_token})
                assert summary["status"] == "ok"
                assert summary["llm_disclosures"] == 1
                assert summary["total_events"] >= 3
                assert "Giulia" not in json.dumps(summary)
        _run(_check())
