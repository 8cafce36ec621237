"""MCP tools for doctor accounts: login/logout, registration and profile."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from metaborisk.core.audit.logger import AuditLogger
    from metaborisk.core.auth.guard import AccessGuard

from metaborisk.core.auth.service import AccountError

logger = logging.getLogger(__name__)


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def register_account_tools(
    mcp: FastMCP,
    guard: AccessGuard,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register account tools on the MCP server."""
    service = guard.accounts

    @mcp.tool
    async def login(
        ctx: Context,
        username: str,
        password: str,
    ) -> str:
        """Log in and obtain a session token for the other tools.

        Args:
            username: Account username.
            password: Account password.
        """
        try:
            account = service.login(username, password)
        except AccountError as exc:
            if audit_logger is not None:
                audit_logger.log_tool_call(
                    tool_name="login",
                    tool_input={"username": username},
                    status="failure",
                    error_type=type(exc).__name__,
                )
            return _error(str(exc))

        token = guard.sessions.issue(account.id)
        if audit_logger is not None:
            audit_logger.log_tool_call(tool_name="login", user_id=account.id)
        return json.dumps({
            "status": "ok",
            "session_token": token,
            "account": account.to_dict(),
        })

    @mcp.tool
    async def logout(
        ctx: Context,
        session_token: str,
    ) -> str:
        """End a session.

        Args:
            session_token: Token returned by ``login``.
        """
        revoked = guard.sessions.revoke(session_token)
        return json.dumps({"status": "ok", "logged_out": revoked})

    @mcp.tool
    async def register(
        ctx: Context,
        username: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
    ) -> str:
        """Register a new doctor account (active immediately, title "Dr.").

        Args:
            username: Unique username.
            password: At least 6 characters.
            first_name: Doctor's first name.
            last_name: Doctor's last name.
        """
        try:
            account = service.register(username, password, first_name, last_name)
        except AccountError as exc:
            return _error(str(exc))

        logger.info("Registered account %s", account.id)
        return json.dumps({"status": "ok", "account": account.to_dict()})

    @mcp.tool
    async def get_profile(
        ctx: Context,
        session_token: str,
    ) -> str:
        """Return the logged-in doctor's profile.

        Args:
            session_token: Token returned by ``login``.
        """
        try:
            account = guard.current_account(session_token)
        except AccountError as exc:
            return _error(str(exc))
        return json.dumps({"status": "ok", "account": account.to_dict()})

    @mcp.tool
    async def update_profile(
        ctx: Context,
        session_token: str,
        first_name: str | None = None,
        last_name: str | None = None,
        title: str | None = None,
        specialization: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> str:
        """Update profile fields shown on reports. Omitted fields are unchanged.

        Args:
            session_token: Token returned by ``login``.
            first_name: First name.
            last_name: Last name.
            title: Title, e.g. "Dr." or "Prof.".
            specialization: Medical specialization.
            email: Contact email.
            phone: Contact phone.
        """
        try:
            account = guard.current_account(session_token)
            updated = service.update_profile(
                account.id,
                first_name=first_name,
                last_name=last_name,
                title=title,
                specialization=specialization,
                email=email,
                phone=phone,
            )
        except AccountError as exc:
            return _error(str(exc))
        return json.dumps({"status": "ok", "account": updated.to_dict()})
