"""MCP tools for administrators: account lifecycle and the audit trail.

All tools require a session token belonging to an ``admin`` account.
The audit trail is PHI-free: it records which tools were used, by whom and
whether patient data was sent to an external model, never the data itself.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from metaborisk.core.audit.logger import AuditLogger
    from metaborisk.core.auth.guard import AccessGuard

from metaborisk.core.auth.service import AccountError

logger = logging.getLogger(__name__)


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


def register_admin_tools(
    mcp: FastMCP,
    guard: AccessGuard,
    audit_logger: AuditLogger,
) -> None:
    """Register admin tools on the MCP server."""
    service = guard.accounts

    @mcp.tool
    async def admin_list_users(
        ctx: Context,
        session_token: str,
    ) -> str:
        """List all accounts, newest first.

        Args:
            session_token: Token of an admin account.
        """
        try:
            guard.require_admin(session_token)
        except AccountError as exc:
            return _error(str(exc))

        accounts = [account.to_dict() for account in service.list_accounts()]
        return json.dumps({"status": "ok", "count": len(accounts), "users": accounts})

    @mcp.tool
    async def admin_create_user(
        ctx: Context,
        session_token: str,
        username: str,
        password: str,
        role: str = "user",
    ) -> str:
        """Create an account.

        Args:
            session_token: Token of an admin account.
            username: Unique username.
            password: Initial password (at least 6 characters).
            role: "user" (default) or "admin".
        """
        try:
            admin = guard.require_admin(session_token)
            account = service.create_account(username, password, role=role)
        except AccountError as exc:
            return _error(str(exc))

        audit_logger.log_account_change(
            tool_name="admin_create_user",
            admin_id=admin.id,
            target_user_id=account.id,
            change=f"created role={account.role}",
        )
        return json.dumps({"status": "ok", "account": account.to_dict()})

    @mcp.tool
    async def admin_update_user_status(
        ctx: Context,
        session_token: str,
        user_id: str,
        is_active: bool,
        expires_at: str = "",
    ) -> str:
        """Activate or deactivate an account and set its subscription expiry.

        A deactivated account is logged out immediately.

        Args:
            session_token: Token of an admin account.
            user_id: Target account id.
            is_active: Whether the account may log in.
            expires_at: ISO date or datetime; a bare date is valid through
                that whole day (UTC). Empty clears the expiry.
        """
        try:
            admin = guard.require_admin(session_token)
            account = service.set_status(
                user_id, is_active=is_active, expires_at=expires_at or None
            )
        except AccountError as exc:
            return _error(str(exc))

        if not account.is_active:
            guard.sessions.revoke_account(account.id)

        audit_logger.log_account_change(
            tool_name="admin_update_user_status",
            admin_id=admin.id,
            target_user_id=account.id,
            change=f"is_active={account.is_active}, expires_at={account.expires_at}",
        )
        return json.dumps({"status": "ok", "account": account.to_dict()})

    @mcp.tool
    async def admin_change_password(
        ctx: Context,
        session_token: str,
        user_id: str,
        new_password: str,
    ) -> str:
        """Reset an account's password. Existing sessions of that account end.

        Args:
            session_token: Token of an admin account.
            user_id: Target account id.
            new_password: New password (at least 6 characters).
        """
        try:
            admin = guard.require_admin(session_token)
            service.change_password(user_id, new_password)
        except AccountError as exc:
            return _error(str(exc))

        if user_id != admin.id:
            guard.sessions.revoke_account(user_id)

        audit_logger.log_account_change(
            tool_name="admin_change_password",
            admin_id=admin.id,
            target_user_id=user_id,
            change="password_reset",
        )
        return json.dumps({"status": "ok", "user_id": user_id})

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        session_token: str,
        days: int = 30,
    ) -> str:
        """View recent access events and how often patient data reached an external model.

        Args:
            session_token: Token of an admin account.
            days: Number of days to look back (default: 30).
        """
        try:
            guard.require_admin(session_token)
        except AccountError as exc:
            return _error(str(exc))

        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        total_events = audit_logger.count_events(since=since)
        disclosure_count = audit_logger.count_disclosures(since=since)
        recent_events = audit_logger.get_events(since=since, limit=20)

        display_events = []
        for event in recent_events:
            display_events.append({
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "user_id": event.get("user_id"),
                "llm_provider": event.get("llm_provider"),
                "llm_disclosed": bool(event.get("llm_disclosed")),
                "status": event.get("status"),
                "duration_ms": event.get("duration_ms"),
            })

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total_events,
            "llm_disclosures": disclosure_count,
            "recent_events": display_events,
        }, indent=2)
