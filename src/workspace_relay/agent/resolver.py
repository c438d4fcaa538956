"""
Credential Resolver for the Workspace Relay local agent.

Single entry point for every API-calling collaborator. Resolution order:

1. in-memory cache, if valid beyond the safety margin
2. on-disk token file, if valid (promoted to the cache)
3. refresh of the on-disk refresh token (failure falls through silently)
4. full interactive sign-in
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional

from ..core.config import AUTH_MODE_DIRECT, AUTH_MODE_RELAY, get_agent_config
from ..utils.errors import AuthenticationFailed, RelayError
from .handshake import HandshakeStrategy, RelayHandshake
from .token_store import StoredCredential, TokenFileStore, now_ms

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Resolves a usable access token, signing in only as a last resort."""

    def __init__(
        self,
        store: Optional[TokenFileStore] = None,
        strategy: Optional[HandshakeStrategy] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store or TokenFileStore()
        self.strategy = strategy or create_strategy()
        self._clock = clock
        self._cached: Optional[StoredCredential] = None
        # One resolution at a time, so concurrent callers share a single sign-in
        self._lock = threading.Lock()

    def get_access_token(self) -> str:
        """
        Get a valid access token.

        Raises:
            AuthenticationFailed: If every fallback, including sign-in, failed.
        """
        with self._lock:
            return self._resolve().access_token

    def _resolve(self) -> StoredCredential:
        now = self._clock()

        if self._cached and self._cached.is_valid(now):
            return self._cached

        stored = self.store.load()
        if stored is not None:
            if stored.is_valid(now):
                logger.debug("Using stored credentials")
                self._cached = stored
                return stored

            if stored.refresh_token:
                refreshed = self._try_refresh(stored.refresh_token)
                if refreshed is not None:
                    self._persist(refreshed)
                    return refreshed

        logger.info("No usable credentials, starting interactive sign-in")
        try:
            credential = self.strategy.authenticate()
        except AuthenticationFailed:
            raise
        except RelayError as e:
            raise AuthenticationFailed(f"Sign-in failed: {e.message}") from e
        except OSError as e:
            logger.error(f"Sign-in could not run: {e}")
            raise AuthenticationFailed(f"Sign-in failed: {e}") from e

        self._persist(credential)
        return credential

    def _try_refresh(self, refresh_token: str) -> Optional[StoredCredential]:
        logger.info("Stored credentials expired, attempting refresh")
        try:
            refreshed = self.strategy.refresh(refresh_token)
        except (RelayError, OSError, KeyError, TypeError, ValueError) as e:
            # Revoked or long-unused refresh tokens are routine
            logger.info(f"Token refresh failed, falling back to sign-in: {e}")
            return None
        logger.info("Credentials refreshed successfully")
        return refreshed

    def _persist(self, credential: StoredCredential) -> None:
        self._cached = credential
        try:
            self.store.save(credential)
        except OSError as e:
            logger.error(f"Error storing credentials: {e}")

    def sign_out(self) -> bool:
        """Forget the cached and stored credentials."""
        with self._lock:
            self._cached = None
            return self.store.delete()

    def get_status(self) -> Dict[str, Any]:
        """Describe the current credential state without resolving one."""
        with self._lock:
            credential = self._cached or self.store.load()
        if credential is None:
            return {"signed_in": False, "token_path": self.store.path}
        return {
            "signed_in": True,
            "valid": credential.is_valid(self._clock()),
            "has_refresh_token": bool(credential.refresh_token),
            "expiry_date": credential.expiry_date,
            "token_path": self.store.path,
        }


def create_strategy(auth_mode: Optional[str] = None) -> HandshakeStrategy:
    """Build the sign-in strategy selected by WORKSPACE_RELAY_AUTH_MODE."""
    config = get_agent_config()
    mode = (auth_mode or config.auth_mode).lower()

    if mode == AUTH_MODE_RELAY:
        return RelayHandshake(login_timeout=config.login_timeout_seconds)
    elif mode == AUTH_MODE_DIRECT:
        from .direct_flow import DirectHandshake

        return DirectHandshake(timeout=config.login_timeout_seconds)
    raise ValueError(f"Unknown auth mode: {mode}")


# Global resolver instance
_resolver: Optional[CredentialResolver] = None


def get_credential_resolver() -> CredentialResolver:
    """Get the global credential resolver instance."""
    global _resolver
    if _resolver is None:
        _resolver = CredentialResolver()
    return _resolver


def set_credential_resolver(resolver: Optional[CredentialResolver]) -> None:
    """Set (or clear) the global credential resolver instance."""
    global _resolver
    _resolver = resolver


def get_access_token() -> str:
    """Get a valid access token from the global resolver."""
    return get_credential_resolver().get_access_token()
