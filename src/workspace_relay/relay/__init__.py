"""
Relay service package for Workspace Relay.

This package provides the publicly reachable half of the handshake:
- In-memory session store with a TTL reaper
- Confidential code and refresh exchanges against Google
- Organizational domain enforcement at the callback leg
"""

from .app import RelayService, create_relay_app, validate_start_params
from .google_oauth import GoogleOAuthClient
from .client_secret import ClientSecretProvider
from .session_store import Session, SessionStore, SessionTokens

__all__ = [
    "ClientSecretProvider",
    "GoogleOAuthClient",
    "RelayService",
    "Session",
    "SessionStore",
    "SessionTokens",
    "create_relay_app",
    "validate_start_params",
]
