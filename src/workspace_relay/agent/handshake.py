"""
Handshake strategies for the local agent.

A strategy knows how to run an interactive sign-in and how to redeem a
refresh token. The relay strategy routes both through the relay service;
the direct strategy (see direct_flow) talks to Google itself.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .callback_listener import LocalCallbackListener
from .relay_client import RelayClient
from .token_store import StoredCredential


class HandshakeStrategy(ABC):
    """Abstract base class for sign-in strategies."""

    @abstractmethod
    def authenticate(self) -> StoredCredential:
        """Run a full interactive sign-in."""
        pass

    @abstractmethod
    def refresh(self, refresh_token: str) -> StoredCredential:
        """Redeem a refresh token for a new credential."""
        pass


class RelayHandshake(HandshakeStrategy):
    """Sign-in and refresh brokered by the relay service."""

    def __init__(
        self,
        relay_client: Optional[RelayClient] = None,
        login_timeout: Optional[float] = None,
    ) -> None:
        self.relay_client = relay_client or RelayClient()
        self.login_timeout = login_timeout

    def authenticate(self) -> StoredCredential:
        listener = LocalCallbackListener(self.relay_client, timeout=self.login_timeout)
        return listener.run()

    def refresh(self, refresh_token: str) -> StoredCredential:
        data = self.relay_client.refresh(refresh_token)
        return StoredCredential.from_token_response(
            data, fallback_refresh_token=refresh_token
        )
