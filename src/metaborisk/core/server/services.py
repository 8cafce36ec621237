"""Builds the storage, account and narrative objects from settings.

Kept apart from :func:`create_app` so the entry point can own the database
handle and close it at shutdown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from metaborisk.core.audit.logger import AuditLogger
from metaborisk.core.auth.accounts import AccountRepository
from metaborisk.core.auth.guard import AccessGuard
from metaborisk.core.auth.service import AccountError, AccountService
from metaborisk.core.auth.sessions import SessionManager
from metaborisk.core.config.settings import Settings
from metaborisk.core.llm.client import NarrativeClient
from metaborisk.core.llm.provider import LLMProvider, create_provider
from metaborisk.core.storage.database import ClinicDatabase
from metaborisk.core.storage.encryption import FieldEncryptor
from metaborisk.core.storage.repository import PatientRepository
from metaborisk.domains.cardiometabolic.domain_logic.narrative_prompt import (
    MAX_SUMMARY_WORDS,
)

logger = logging.getLogger(__name__)


@dataclass
class ClinicServices:
    """Everything the tools need, constructed once per server."""

    database: ClinicDatabase
    repository: PatientRepository
    account_service: AccountService
    guard: AccessGuard
    audit_logger: AuditLogger
    narrative_client: NarrativeClient
    persistent: bool

    def close(self) -> None:
        self.database.close()


def _select_provider(settings: Settings) -> LLMProvider:
    """Create the configured provider, falling back to mock without an API key."""
    if settings.llm_provider == "mock":
        return create_provider("mock")

    api_key, model = {
        "gemini": (settings.gemini_api_key, settings.gemini_model),
        "anthropic": (settings.anthropic_api_key, settings.anthropic_model),
        "openai": (settings.openai_api_key, settings.openai_model),
    }[settings.llm_provider]

    if not api_key:
        logger.warning(
            "No API key configured for provider '%s'; falling back to mock provider",
            settings.llm_provider,
        )
        return create_provider("mock")
    return create_provider(settings.llm_provider, api_key=api_key, model=model)


def _open_database(settings: Settings) -> tuple[ClinicDatabase, FieldEncryptor, bool]:
    if not settings.encryption_key:
        logger.warning(
            "No ENCRYPTION_KEY configured; running on an in-memory database. "
            "Data will be lost on restart."
        )
        database = ClinicDatabase(":memory:")
        database.initialize()
        return database, FieldEncryptor.ephemeral(), False

    encryptor = FieldEncryptor(settings.encryption_key)
    db_path = str(Path(settings.db_path).expanduser())
    database = ClinicDatabase(db_path)
    database.initialize()
    logger.info(
        "Clinic database initialized: %s (schema v%d)",
        db_path,
        database.get_schema_version(),
    )
    return database, encryptor, True


def build_services(
    settings: Settings,
    *,
    provider_override: LLMProvider | None = None,
) -> ClinicServices:
    """Construct the service graph described by ``settings``.

    Raises:
        EncryptionError: If ``ENCRYPTION_KEY`` is set but not a valid Fernet key.
        DatabaseError: If the database cannot be opened.
    """
    database, encryptor, persistent = _open_database(settings)

    account_service = AccountService(AccountRepository(database))
    try:
        account_service.ensure_admin(settings.admin_username, settings.admin_password)
    except AccountError as exc:
        logger.error("Could not create admin account %r: %s", settings.admin_username, exc)

    provider = provider_override if provider_override is not None else _select_provider(settings)
    narrative_client = NarrativeClient(
        provider,
        timeout_seconds=settings.narrative_timeout_seconds,
        max_tokens=settings.narrative_max_tokens,
        temperature=settings.narrative_temperature,
        max_words=MAX_SUMMARY_WORDS,
    )

    sessions = SessionManager(ttl_seconds=settings.session_ttl_minutes * 60)

    return ClinicServices(
        database=database,
        repository=PatientRepository(database, encryptor),
        account_service=account_service,
        guard=AccessGuard(sessions, account_service),
        audit_logger=AuditLogger(database),
        narrative_client=narrative_client,
        persistent=persistent,
    )
