"""
Identity provider client for the relay.

Builds the Google authorization URL and performs the confidential code and
refresh exchanges against the token endpoint.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from google.auth import jwt
from google.auth.transport.requests import Request
from google.oauth2 import id_token as google_id_token

from ..auth.scopes import get_scope_string
from ..core.config import RelayConfig
from ..utils.errors import TokenExchangeFailed
from .client_secret import ClientSecretProvider

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def decode_id_token_claims(token: str) -> Dict[str, Any]:
    """
    Read the claims of an identity token without verifying its signature.

    Raises:
        ValueError: If the token is not a well-formed JWT.
    """
    return jwt.decode(token, verify=False)


class GoogleOAuthClient:
    """Confidential OAuth client used by the relay's callback and refresh legs."""

    def __init__(
        self,
        config: RelayConfig,
        secret_provider: ClientSecretProvider,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.secret_provider = secret_provider
        self.http = http or requests.Session()

    def authorization_url(self, state: str) -> str:
        """
        Build the provider authorization URL for one session.

        prompt=consent forces a refresh token on every grant, and hd only
        narrows the account chooser; the domain is enforced at callback.
        """
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": get_scope_string(),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        if self.config.allowed_domain:
            params["hd"] = self.config.allowed_domain
        return f"{GOOGLE_AUTH_URI}?{urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens.

        Returns:
            Token response with access_token, refresh_token, expires_in, id_token.

        Raises:
            TokenExchangeFailed: On network failure or a provider-reported error.
        """
        return self._post_token(
            {
                "code": code,
                "client_id": self.config.client_id,
                "client_secret": self.secret_provider.get_client_secret(),
                "redirect_uri": self.config.redirect_uri,
                "grant_type": "authorization_code",
            },
            operation="Code exchange",
        )

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """Exchange a refresh token for a new access token."""
        return self._post_token(
            {
                "refresh_token": refresh_token,
                "client_id": self.config.client_id,
                "client_secret": self.secret_provider.get_client_secret(),
                "grant_type": "refresh_token",
            },
            operation="Token refresh",
        )

    def _post_token(self, data: Dict[str, str], operation: str) -> Dict[str, Any]:
        try:
            response = self.http.post(
                GOOGLE_TOKEN_URI,
                data=data,
                timeout=self.config.provider_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"{operation} request failed: {e}")
            raise TokenExchangeFailed(f"{operation} failed: {e}", reason=str(e)) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not isinstance(payload, dict):
            payload = {}

        if payload.get("error") or not response.ok:
            reason = payload.get("error_description") or payload.get("error") or (
                response.text[:500]
            )
            logger.warning(
                "%s rejected by provider (HTTP %s): %s",
                operation,
                response.status_code,
                payload.get("error"),
            )
            raise TokenExchangeFailed(
                f"{operation} failed: {reason}",
                status_code=response.status_code,
                reason=reason,
            )

        return payload

    def identity_claims(self, token: str) -> Dict[str, Any]:
        """
        Read the identity token's claims.

        Signature verification against Google's published keys is only
        performed when RELAY_VERIFY_ID_TOKEN is enabled.
        """
        if self.config.verify_id_token:
            return google_id_token.verify_oauth2_token(
                token, Request(session=self.http), audience=self.config.client_id
            )
        return decode_id_token_claims(token)
