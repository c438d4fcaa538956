"""
Workspace Relay HTTP service.

The relay owns the registered redirect URI and the confidential client
secret. It brokers the authorization code flow for local agents that have
no public address, in three legs:

1. GET  /auth/start     - agent's browser arrives; redirect to Google.
2. GET  /auth/callback  - Google redirects back; exchange code, enforce
                          domain, park tokens, redirect to the local agent.
3. POST /auth/token     - local agent picks the tokens up, exactly once.

POST /auth/refresh is a stateless refresh-token exchange.
"""

import json
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from google.auth.exceptions import GoogleAuthError

from ..core.config import RelayConfig, get_relay_config
from ..utils.errors import (
    DomainRejected,
    InvalidRequest,
    ProviderDenied,
    SessionNotFound,
    TokenExchangeFailed,
)
from ..utils import pages
from .google_oauth import GoogleOAuthClient
from .client_secret import ClientSecretProvider
from .session_store import STATE_PENDING, SessionStore, SessionTokens

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"[a-f0-9]{32}")
PORT_PATTERN = re.compile(r"[0-9]{1,5}")
MAX_PORT = 65535


def validate_start_params(session_id: Optional[str], port: Optional[str]) -> int:
    """
    Validate the start leg's parameters.

    Both values end up in redirect URLs, so anything outside the strict
    patterns is rejected.

    Returns:
        The callback port as an integer.

    Raises:
        InvalidRequest: If either value is missing or malformed.
    """
    if not session_id or not SESSION_ID_PATTERN.fullmatch(session_id):
        raise InvalidRequest("Invalid parameters")
    if not port or not PORT_PATTERN.fullmatch(port):
        raise InvalidRequest("Invalid parameters")

    callback_port = int(port)
    if not 0 < callback_port <= MAX_PORT:
        raise InvalidRequest("Invalid parameters")
    return callback_port


def local_callback_url(callback_port: int, session_id: str) -> str:
    return f"http://127.0.0.1:{callback_port}/callback?session_id={session_id}"


async def _parse_json_body(request: Request) -> Dict[str, Any]:
    """Parse a JSON object body; malformed or non-object bodies read as empty."""
    body = await request.body()
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


class RelayService:
    """Handshake orchestration, independent of the HTTP framework."""

    def __init__(
        self,
        config: RelayConfig,
        store: SessionStore,
        oauth_client: GoogleOAuthClient,
    ) -> None:
        self.config = config
        self.store = store
        self.oauth_client = oauth_client

    def start(self, session_id: Optional[str], port: Optional[str]) -> str:
        """Register a pending session and return the provider authorization URL."""
        callback_port = validate_start_params(session_id, port)
        if self.store.create(session_id, callback_port) is None:
            raise InvalidRequest("Invalid parameters", session_id=session_id)
        logger.info(
            "Auth start: session %s... (callback port %d)",
            session_id[:8],
            callback_port,
        )
        return self.oauth_client.authorization_url(state=session_id)

    def callback(
        self, code: Optional[str], state: Optional[str], error: Optional[str]
    ) -> str:
        """
        Complete the provider leg of the handshake.

        Returns:
            The local agent's callback URL to redirect the browser to.

        Raises:
            ProviderDenied, SessionNotFound, TokenExchangeFailed, DomainRejected.
        """
        if error or not code or not state:
            if state and error:
                session = self.store.get(state)
                if session is not None and session.state == STATE_PENDING:
                    self.store.delete(state)
            raise ProviderDenied(
                f"Google returned an error: {error}" if error else "Missing code or state",
                session_id=state,
            )

        session = self.store.get(state)
        if session is None or session.state != STATE_PENDING:
            raise SessionNotFound("Session expired", session_id=state)

        try:
            token_data = self.oauth_client.exchange_code(code)
            claims = self._identity_claims(token_data, state)
        except TokenExchangeFailed:
            self.store.delete(state)
            raise

        allowed = self.config.allowed_domain
        if allowed and claims.get("hd") != allowed:
            self.store.delete(state)
            logger.warning(
                "Auth callback: session %s... rejected, domain %r",
                state[:8],
                claims.get("hd"),
            )
            raise DomainRejected(claims.get("hd"), allowed, session_id=state)

        tokens = SessionTokens(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=int(token_data.get("expires_in", 3600)),
        )
        fulfilled = self.store.attach_tokens(state, tokens)
        if fulfilled is None:
            raise SessionNotFound("Session expired", session_id=state)

        logger.info("Auth callback: session %s... fulfilled", state[:8])
        return local_callback_url(fulfilled.callback_port, state)

    def _identity_claims(self, token_data: Dict[str, Any], state: str) -> Dict[str, Any]:
        if "access_token" not in token_data:
            raise TokenExchangeFailed(
                "Token response is missing access_token", session_id=state
            )
        raw_id_token = token_data.get("id_token")
        if not raw_id_token:
            if self.config.allowed_domain:
                raise TokenExchangeFailed(
                    "Token response is missing id_token", session_id=state
                )
            return {}
        try:
            return self.oauth_client.identity_claims(raw_id_token)
        except (ValueError, GoogleAuthError) as e:
            raise TokenExchangeFailed(
                f"Invalid identity token: {e}", reason=str(e), session_id=state
            ) from e

    def pickup(self, session_id: Any) -> Dict[str, Any]:
        """
        Hand a fulfilled session's tokens to the local agent, exactly once.

        Raises:
            SessionNotFound: If the session is unknown, pending, or consumed.
        """
        if not isinstance(session_id, str) or not session_id:
            raise SessionNotFound("Session not found or already used")

        tokens = self.store.take_tokens(session_id)
        if tokens is None:
            raise SessionNotFound("Session not found or already used", session_id)

        logger.info("Token pickup: session %s... consumed", session_id[:8])
        return tokens.to_dict()

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        return self.oauth_client.refresh(refresh_token)


def create_relay_app(
    config: Optional[RelayConfig] = None,
    store: Optional[SessionStore] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
) -> FastAPI:
    """
    Build the relay FastAPI application.

    The session reaper runs for the lifetime of the application.
    """
    if config is None:
        config = get_relay_config()
    if store is None:
        store = SessionStore(ttl_seconds=config.session_ttl_seconds)
    if oauth_client is None:
        oauth_client = GoogleOAuthClient(config, ClientSecretProvider(config))
    service = RelayService(config, store, oauth_client)

    if not config.allowed_domain:
        logger.warning("RELAY_ALLOWED_DOMAIN is not set; domain restriction disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.start_reaper(config.reaper_interval_seconds)
        try:
            yield
        finally:
            store.stop_reaper()

    app = FastAPI(title="Workspace Relay", lifespan=lifespan)
    app.state.relay = service

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/auth/start")
    def auth_start(session_id: Optional[str] = None, port: Optional[str] = None):
        try:
            auth_url = service.start(session_id, port)
        except InvalidRequest as e:
            return PlainTextResponse(e.message, status_code=400)
        return RedirectResponse(auth_url, status_code=302)

    @app.get("/auth/callback")
    def auth_callback(
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
    ):
        try:
            redirect_to = service.callback(code, state, error)
        except ProviderDenied as e:
            logger.info(f"Auth callback: {e}")
            return HTMLResponse(pages.authorization_failed_page(error), status_code=400)
        except SessionNotFound:
            return HTMLResponse(pages.session_expired_page(), status_code=404)
        except DomainRejected:
            return HTMLResponse(
                pages.access_denied_page(config.allowed_domain), status_code=403
            )
        except TokenExchangeFailed as e:
            return HTMLResponse(
                pages.token_exchange_failed_page(e.reason or e.message),
                status_code=502,
            )
        except Exception as e:
            logger.error(f"Error processing auth callback: {e}", exc_info=True)
            return HTMLResponse(
                pages.authorization_failed_page(str(e)), status_code=500
            )
        return RedirectResponse(redirect_to, status_code=302)

    @app.post("/auth/token")
    async def auth_token(request: Request):
        body = await _parse_json_body(request)
        try:
            tokens = service.pickup(body.get("session_id"))
        except SessionNotFound as e:
            return JSONResponse({"error": e.message}, status_code=404)
        return JSONResponse(tokens)

    @app.post("/auth/refresh")
    async def auth_refresh(request: Request):
        body = await _parse_json_body(request)
        refresh_token = body.get("refresh_token")
        if not refresh_token or not isinstance(refresh_token, str):
            return JSONResponse({"error": "Missing refresh_token"}, status_code=400)

        try:
            token_data = await run_in_threadpool(service.refresh, refresh_token)
        except TokenExchangeFailed as e:
            status = e.status_code if e.status_code and 400 <= e.status_code < 500 else 502
            return JSONResponse(
                {"error": "refresh_failed", "error_description": e.reason or e.message},
                status_code=status,
            )
        except Exception as e:
            logger.error(f"Error processing token refresh: {e}", exc_info=True)
            return PlainTextResponse("Internal server error", status_code=500)
        return JSONResponse(token_data)

    return app


def main() -> None:
    """Entry point for the relay service."""
    config = get_relay_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Workspace Relay: %s", config.get_environment_summary())
    # access log would record authorization codes and session ids
    uvicorn.run(
        create_relay_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
