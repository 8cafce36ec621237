"""Shared test fixtures for MetaboRisk tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_measurements():
    """70 kg, 175 cm, glucose 90, insulin 10, TG 150, HDL 50."""
    from metaborisk.domains.cardiometabolic.domain_logic.risk_models import MeasurementInput

    return MeasurementInput(
        weight=70.0,
        height=175.0,
        glucose=90.0,
        insulin=10.0,
        triglycerides=150.0,
        hdl=50.0,
    )


@pytest.fixture
def sample_patient():
    from metaborisk.domains.cardiometabolic.domain_logic.risk_models import PatientDetails

    return PatientDetails(
        first_name="Mario",
        last_name="Rossi",
        birth_date="1980-05-15",
        gender="M",
    )


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clinic_db():
    """Create an in-memory ClinicDatabase for testing."""
    from metaborisk.core.storage.database import ClinicDatabase

    db = ClinicDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from metaborisk.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def patient_repository(clinic_db, field_encryptor):
    """Create a PatientRepository backed by in-memory SQLite."""
    from metaborisk.core.storage.repository import PatientRepository

    return PatientRepository(clinic_db, field_encryptor)


@pytest.fixture
def account_repository(clinic_db):
    from metaborisk.core.auth.accounts import AccountRepository

    return AccountRepository(clinic_db)


@pytest.fixture
def account_service(account_repository):
    from metaborisk.core.auth.service import AccountService

    return AccountService(account_repository)


@pytest.fixture
def doctor(account_service):
    """A registered, active doctor account."""
    return account_service.register("mrossi", "secret123", "Mario", "Rossi")


@pytest.fixture
def other_doctor(account_service):
    return account_service.register("lbianchi", "secret456", "Luca", "Bianchi")


@pytest.fixture
def audit_logger(clinic_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from metaborisk.core.audit.logger import AuditLogger

    return AuditLogger(clinic_db)
