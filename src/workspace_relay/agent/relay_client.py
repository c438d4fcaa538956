"""HTTP client the local agent uses to talk to the relay service."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from ..core.config import get_agent_config
from ..utils.errors import SessionNotFound, TokenExchangeFailed

logger = logging.getLogger(__name__)


class RelayClient:
    """Builds the start URL and calls the relay's token and refresh legs."""

    def __init__(
        self,
        relay_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        config = get_agent_config()
        self.relay_url = (relay_url or config.relay_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.http_timeout_seconds
        self.http = http or requests.Session()

    def start_url(self, session_id: str, port: int) -> str:
        query = urlencode({"session_id": session_id, "port": str(port)})
        return f"{self.relay_url}/auth/start?{query}"

    def _post(self, path: str, payload: Dict[str, Any], operation: str) -> requests.Response:
        try:
            return self.http.post(
                f"{self.relay_url}{path}", json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TokenExchangeFailed(f"{operation} failed: {e}", reason=str(e)) from e

    def pickup_tokens(self, session_id: str) -> Dict[str, Any]:
        """
        Retrieve the tokens parked for a session. Works exactly once.

        Raises:
            SessionNotFound: If the relay has nothing for this session.
            TokenExchangeFailed: On transport failure or an unexpected response.
        """
        response = self._post("/auth/token", {"session_id": session_id}, "Token pickup")
        if response.status_code == 404:
            raise SessionNotFound("Session not found or already used", session_id)
        if not response.ok:
            raise TokenExchangeFailed(
                f"Token pickup failed (HTTP {response.status_code})",
                status_code=response.status_code,
                session_id=session_id,
            )
        return _json_object(response, "Token pickup")

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """
        Exchange a refresh token through the relay.

        Raises:
            TokenExchangeFailed: If the relay or provider rejects the refresh.
        """
        response = self._post(
            "/auth/refresh", {"refresh_token": refresh_token}, "Token refresh"
        )
        if not response.ok:
            reason = None
            try:
                reason = response.json().get("error_description")
            except (ValueError, AttributeError):
                pass
            raise TokenExchangeFailed(
                f"Token refresh failed (HTTP {response.status_code})",
                status_code=response.status_code,
                reason=reason,
            )
        data = _json_object(response, "Token refresh")
        if data.get("error"):
            raise TokenExchangeFailed(
                f"Token refresh failed: {data.get('error')}",
                status_code=response.status_code,
                reason=data.get("error_description"),
            )
        return data


def _json_object(response: requests.Response, operation: str) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise TokenExchangeFailed(f"{operation} returned invalid JSON") from e
    if not isinstance(data, dict):
        raise TokenExchangeFailed(f"{operation} returned an unexpected payload")
    return data
