"""
Direct sign-in strategy.

Performs the installed-app OAuth flow against Google from the local agent
itself, with PKCE, using a client_secret.json available on this machine.
Use it for deployments without a relay.
"""

import logging
import os
from datetime import timezone
from typing import Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from ..auth.scopes import get_scopes
from ..core.config import get_agent_config
from ..relay.google_oauth import GOOGLE_TOKEN_URI, decode_id_token_claims
from ..relay.client_secret import load_client_secrets_file
from ..utils.errors import AuthenticationFailed, DomainRejected, TokenExchangeFailed
from .handshake import HandshakeStrategy
from .token_store import StoredCredential, now_ms

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN_SECONDS = 3600


def credential_from_google(credentials: Credentials) -> StoredCredential:
    """Convert google-auth credentials to the stored credential format."""
    if credentials.expiry is not None:
        # google-auth keeps expiry as naive UTC
        expiry = credentials.expiry.replace(tzinfo=timezone.utc)
        expiry_date = int(expiry.timestamp() * 1000)
    else:
        expiry_date = now_ms() + DEFAULT_EXPIRES_IN_SECONDS * 1000
    return StoredCredential(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expiry_date=expiry_date,
    )


class DirectHandshake(HandshakeStrategy):
    """Installed-app flow with PKCE, no relay involved."""

    def __init__(
        self,
        client_secrets_file: Optional[str] = None,
        allowed_domain: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        config = get_agent_config()
        self.client_secrets_file = client_secrets_file or config.client_secrets_file
        self.allowed_domain = (
            allowed_domain if allowed_domain is not None else config.allowed_domain
        )
        self.timeout = timeout

    def _require_client_secrets(self) -> None:
        if not os.path.exists(self.client_secrets_file):
            raise AuthenticationFailed(
                f"Client secrets file not found at {self.client_secrets_file}. "
                "Download it from Google Cloud Console."
            )

    def authenticate(self) -> StoredCredential:
        self._require_client_secrets()

        flow = InstalledAppFlow.from_client_secrets_file(
            self.client_secrets_file,
            scopes=get_scopes(),
            autogenerate_code_verifier=True,
        )

        extra = {"access_type": "offline", "prompt": "consent"}
        if self.allowed_domain:
            extra["hd"] = self.allowed_domain

        try:
            credentials = flow.run_local_server(
                host="127.0.0.1",
                port=0,
                open_browser=True,
                timeout_seconds=int(self.timeout) if self.timeout else None,
                **extra,
            )
        except (OSError, ConnectionError) as e:
            logger.error(f"Network/IO error during direct sign-in: {e}")
            raise AuthenticationFailed(f"Sign-in failed: {e}") from e
        except Exception as e:
            # oauthlib raises its own error types for denied or incomplete grants
            logger.error(f"Direct sign-in failed: {e}")
            raise AuthenticationFailed(f"Sign-in failed: {e}") from e

        if credentials is None or not credentials.token:
            raise AuthenticationFailed("Sign-in did not complete")

        self._check_domain(credentials)
        return credential_from_google(credentials)

    def _check_domain(self, credentials: Credentials) -> None:
        if not self.allowed_domain:
            return
        raw_id_token = getattr(credentials, "id_token", None)
        claims = {}
        if raw_id_token:
            try:
                claims = decode_id_token_claims(raw_id_token)
            except ValueError as e:
                logger.warning(f"Could not read identity token: {e}")
        if claims.get("hd") != self.allowed_domain:
            raise DomainRejected(claims.get("hd"), self.allowed_domain)

    def refresh(self, refresh_token: str) -> StoredCredential:
        self._require_client_secrets()
        secrets = load_client_secrets_file(self.client_secrets_file)

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=secrets.get("token_uri", GOOGLE_TOKEN_URI),
            client_id=secrets["client_id"],
            client_secret=secrets["client_secret"],
        )
        try:
            credentials.refresh(Request())
        except RefreshError as e:
            raise TokenExchangeFailed(f"Token refresh failed: {e}", reason=str(e)) from e

        return credential_from_google(credentials)
