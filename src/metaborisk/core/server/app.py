"""MetaboRisk MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from metaborisk.core.config.settings import get_settings
from metaborisk.core.llm.provider import LLMProvider
from metaborisk.core.server.services import ClinicServices, build_services
from metaborisk.domains.cardiometabolic.prompts.clinical_prompts import (
    register_clinical_prompts,
)
from metaborisk.domains.cardiometabolic.tools.account_tools import register_account_tools
from metaborisk.domains.cardiometabolic.tools.admin_tools import register_admin_tools
from metaborisk.domains.cardiometabolic.tools.assessment_tools import (
    register_assessment_tools,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "MetaboRisk"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    services_override: ClinicServices | None = None,
    provider_override: LLMProvider | None = None,
) -> FastMCP:
    """Create and configure the MetaboRisk MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Builds storage, accounts, sessions, audit and the narrative client
       (unless ``services_override`` is given)
    3. Registers all tools and prompts
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "MetaboRisk — cardiometabolic risk assessment for doctors and "
            "nutritionists. Computes BMI, HOMA-IR and the TG/HDL ratio, "
            "classifies each into a risk tier, keeps a per-doctor patient "
            "archive and drafts clinical summaries with an AI model. "
            "Call login first and pass the session_token to every other tool."
        ),
    )

    services = (
        services_override
        if services_override is not None
        else build_services(settings, provider_override=provider_override)
    )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "storage": "persistent" if services.persistent else "in_memory",
            "llm_provider": services.narrative_client.provider_name,
            "patients_stored": services.repository.count_patients(),
            "active_sessions": services.guard.sessions.active_count(),
        }

    register_account_tools(server, services.guard, services.audit_logger)
    register_assessment_tools(
        server,
        services.guard,
        services.repository,
        services.narrative_client,
        services.audit_logger,
    )
    register_admin_tools(server, services.guard, services.audit_logger)
    logger.info(
        "Tools registered (narrative provider: %s)", services.narrative_client.provider_name
    )

    # --- Register prompts ---
    register_clinical_prompts(server)

    return server


# Module-level instance for FastMCP discovery ("...app.py:mcp").
# Lazy: only created when this attribute is accessed (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
