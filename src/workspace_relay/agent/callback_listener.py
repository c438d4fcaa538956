"""
Local Callback Listener for Workspace Relay.

Runs a single-use HTTP listener on an OS-assigned loopback port for the
duration of one sign-in. The relay redirects the browser here once it holds
the tokens; the listener then picks them up from the relay itself and
resolves the pending sign-in.
"""

import asyncio
import logging
import secrets
import socket
import sys
import threading
import time
import webbrowser
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, Tuple

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from ..utils import pages
from ..utils.errors import AuthenticationFailed, ProviderDenied, RelayError
from .relay_client import RelayClient
from .token_store import StoredCredential

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
LOOPBACK_HOST = "127.0.0.1"


def generate_session_id() -> str:
    """128-bit random session id as 32 lowercase hex characters."""
    return secrets.token_hex(16)


class LocalCallbackListener:
    """
    Single-use loopback listener for the relay handshake.

    The first request on /callback settles the sign-in, whatever its
    outcome. The listener is closed on every exit path of run().
    """

    def __init__(
        self,
        relay_client: RelayClient,
        timeout: Optional[float] = None,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self.relay_client = relay_client
        self.timeout = timeout
        self.open_browser = open_browser
        self.session_id = generate_session_id()
        self.port: Optional[int] = None

        self.app = FastAPI()
        self.server: Optional[uvicorn.Server] = None
        self.server_thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None

        self._result: "Future[StoredCredential]" = Future()
        self._claim_lock = threading.Lock()
        self._claimed = False

        self._setup_callback_route()

    def _setup_callback_route(self) -> None:
        @self.app.get(CALLBACK_PATH)
        def oauth_callback(
            session_id: Optional[str] = None, error: Optional[str] = None
        ) -> HTMLResponse:
            content, status_code = self.handle_callback(session_id, error)
            return HTMLResponse(content=content, status_code=status_code)

    def _claim(self) -> bool:
        with self._claim_lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def handle_callback(
        self, returned_session_id: Optional[str], error: Optional[str]
    ) -> Tuple[str, int]:
        """
        Settle the sign-in from the browser's callback request.

        Returns:
            Tuple of (html page, status code) for the browser.
        """
        if not self._claim():
            return pages.authorization_failed_page("This sign-in has already completed."), 409

        if error or returned_session_id != self.session_id:
            reason = error or "session mismatch"
            logger.error(f"Authorization failed: {reason}")
            self._result.set_exception(
                ProviderDenied(f"Authorization failed: {reason}", self.session_id)
            )
            return pages.authorization_failed_page(), 400

        try:
            data = self.relay_client.pickup_tokens(self.session_id)
            credential = StoredCredential.from_token_response(data)
        except (RelayError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Token retrieval failed: {e}")
            self._result.set_exception(
                AuthenticationFailed(f"Token retrieval failed: {e}", self.session_id)
            )
            return pages.token_retrieval_failed_page(), 502

        logger.info("Sign-in completed for session %s...", self.session_id[:8])
        self._result.set_result(credential)
        return pages.authorized_page(), 200

    def start(self) -> int:
        """
        Bind the loopback port and start serving in a background thread.

        Returns:
            The OS-assigned port.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind((LOOPBACK_HOST, 0))
        self._socket = sock
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(self.app, log_level="warning", access_log=False)
        self.server = uvicorn.Server(config)

        def run_server() -> None:
            """Run the server in a separate thread."""
            try:
                asyncio.run(self.server.serve(sockets=[sock]))
            except Exception as e:
                logger.error(f"Local callback listener error: {e}", exc_info=True)
                if self._claim():
                    self._result.set_exception(
                        AuthenticationFailed(f"Local callback listener failed: {e}")
                    )

        self.server_thread = threading.Thread(
            target=run_server, name="oauth-callback-listener", daemon=True
        )
        self.server_thread.start()

        # Wait for the listener to accept connections
        max_wait = 3.0
        start_time = time.time()
        while time.time() - start_time < max_wait:
            if self.server.started or not self.server_thread.is_alive():
                break
            time.sleep(0.05)

        logger.info(f"Local callback listener on {LOOPBACK_HOST}:{self.port}")
        return self.port

    def close(self) -> None:
        """Stop the listener and release the port."""
        if self.server is not None:
            self.server.should_exit = True
        if self.server_thread and self.server_thread.is_alive():
            self.server_thread.join(timeout=3.0)
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self.server_thread = None
        logger.debug("Local callback listener closed")

    def announce(self, start_url: str) -> None:
        """Show the sign-in URL and try to open it in a browser."""
        sys.stderr.write(
            "Opening browser for Google sign-in...\n"
            f"If it doesn't open, visit:\n{start_url}\n"
        )
        try:
            self.open_browser(start_url)
        except Exception as e:
            logger.warning(f"Could not open browser automatically: {e}")

    def run(self) -> StoredCredential:
        """
        Perform one interactive sign-in through the relay.

        Raises:
            RelayError: If the sign-in fails, is rejected, or times out.
        """
        try:
            port = self.start()
            self.announce(self.relay_client.start_url(self.session_id, port))
            try:
                return self._result.result(timeout=self.timeout)
            except FutureTimeoutError:
                raise AuthenticationFailed(
                    f"Sign-in was not completed within {self.timeout:.0f} seconds",
                    self.session_id,
                )
        finally:
            self.close()


def authenticate_via_relay(
    relay_client: Optional[RelayClient] = None, timeout: Optional[float] = None
) -> StoredCredential:
    """Run a full browser sign-in through the relay and return the new credential."""
    listener = LocalCallbackListener(relay_client or RelayClient(), timeout=timeout)
    return listener.run()
