"""
Local agent package for Workspace Relay.

This package provides the credential side of the handshake:
- Owner-only on-disk token file with an in-memory cache
- Single-use loopback callback listener
- Relay-brokered and direct (PKCE) sign-in strategies
- The get_access_token() entry point used by API collaborators
"""

from .callback_listener import LocalCallbackListener, generate_session_id
from .handshake import HandshakeStrategy, RelayHandshake
from .relay_client import RelayClient
from .resolver import (
    CredentialResolver,
    get_access_token,
    get_credential_resolver,
    set_credential_resolver,
)
from .token_store import StoredCredential, TokenFileStore

__all__ = [
    "CredentialResolver",
    "HandshakeStrategy",
    "LocalCallbackListener",
    "RelayClient",
    "RelayHandshake",
    "StoredCredential",
    "TokenFileStore",
    "generate_session_id",
    "get_access_token",
    "get_credential_resolver",
    "set_credential_resolver",
]
