"""Authentication MCP tools for Workspace Relay."""

import logging
from datetime import datetime, timezone

from .main import mcp
from ..agent.resolver import get_credential_resolver
from ..utils.errors import format_error

logger = logging.getLogger(__name__)


@mcp.tool()
def workspace_sign_in() -> str:
    """
    Sign in to Google Workspace, or confirm an existing sign-in.

    NOTE: Other Workspace tools sign in automatically when needed. Use this
    tool to authenticate ahead of time or after signing out.

    Returns:
        Confirmation message, or error message.
    """
    try:
        get_credential_resolver().get_access_token()
    except Exception as e:
        logger.error(f"Google Workspace sign-in failed: {e}", exc_info=True)
        return f"**Error:** {format_error('Sign-in', e)}"
    return "Signed in to Google Workspace."


@mcp.tool()
def workspace_auth_status() -> str:
    """
    Report whether Google Workspace credentials are stored and still valid.

    Returns:
        Human-readable credential status.
    """
    status = get_credential_resolver().get_status()
    if not status["signed_in"]:
        return "Not signed in. Any Workspace tool will start a browser sign-in."

    expiry = datetime.fromtimestamp(status["expiry_date"] / 1000, tz=timezone.utc)
    state = "valid" if status["valid"] else "expired"
    lines = [
        f"Signed in (access token {state}, expires {expiry.isoformat()}).",
        f"Refresh token: {'present' if status['has_refresh_token'] else 'missing'}",
        f"Credentials file: {status['token_path']}",
    ]
    return "\n".join(lines)


@mcp.tool()
def workspace_sign_out() -> str:
    """
    Delete the stored Google Workspace credentials.

    Returns:
        Confirmation message.
    """
    removed = get_credential_resolver().sign_out()
    if removed:
        return "Signed out. Stored credentials were deleted."
    return "No stored credentials to delete."
