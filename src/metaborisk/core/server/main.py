"""MetaboRisk server entry point — ``python -m metaborisk.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from metaborisk.core.config.settings import get_settings
from metaborisk.core.server.app import create_app
from metaborisk.core.server.services import build_services


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the MetaboRisk MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.metaborisk_log_level.upper(), logging.INFO)
    )

    logger = logging.getLogger(__name__)
    if not settings.metaborisk_allow_insecure_bind and not _is_loopback_host(
        settings.metaborisk_host
    ):
        raise RuntimeError(
            "Refusing to bind MetaboRisk to a non-loopback host without TLS in front. "
            "Set METABORISK_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting MetaboRisk server on %s:%d",
        settings.metaborisk_host,
        settings.metaborisk_port,
    )

    services = build_services(settings)
    try:
        mcp = create_app(services_override=services)
        mcp.run(
            transport="streamable-http",
            host=settings.metaborisk_host,
            port=settings.metaborisk_port,
        )
    finally:
        services.close()


if __name__ == "__main__":
    run()
