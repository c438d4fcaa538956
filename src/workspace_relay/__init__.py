"""Workspace Relay - Google Workspace credential broker.

This package provides an OAuth relay service that holds the confidential
client secret on behalf of local agents, and the local agent side that
resolves a usable bearer token for Workspace API calls.
"""
from .agent.resolver import get_access_token
from .utils.errors import AuthenticationFailed

__version__ = "0.1.0"
__all__ = ["AuthenticationFailed", "get_access_token"]
