"""
OAuth scope definitions for Workspace Relay.
"""

from .scopes import SCOPES, WORKSPACE_SCOPES, get_scope_string, get_scopes

__all__ = [
    "SCOPES",
    "WORKSPACE_SCOPES",
    "get_scope_string",
    "get_scopes",
]
