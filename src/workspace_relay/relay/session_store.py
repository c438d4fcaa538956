"""
Handshake Session Store for the Workspace Relay.

Holds in-flight authorization sessions in memory, keyed by the opaque
session id the local agent generated. A background reaper evicts sessions
older than the TTL so abandoned handshakes do not accumulate.

The store is process-local: the relay must run as a single instance (or
the store must be swapped for a shared TTL cache) for the legs of one
handshake to land on the same store.
"""

import logging
import threading
import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

STATE_PENDING = "pending"
STATE_FULFILLED = "fulfilled"


@dataclass
class SessionTokens:
    """Tokens obtained by the callback leg, held until pickup."""

    access_token: str
    refresh_token: Optional[str]
    expires_in: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
        }


@dataclass
class Session:
    """Correlation record for one authorization attempt."""

    session_id: str
    callback_port: int
    created_at: float
    tokens: Optional[SessionTokens] = None

    @property
    def state(self) -> str:
        return STATE_FULFILLED if self.tokens is not None else STATE_PENDING


class SessionStore:
    """
    Thread-safe in-memory session store.

    Sessions move pending -> fulfilled -> consumed. Consumption deletes the
    session, so tokens can be handed out at most once.
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = RLock()
        self._clock = clock
        self.ttl_seconds = ttl_seconds

        self._reaper_thread: Optional[threading.Thread] = None
        self._reaper_stop = threading.Event()

    def create(self, session_id: str, callback_port: int) -> Optional[Session]:
        """
        Create and store a new pending session.

        Returns:
            The new session, or None if a session with this id is already live.
        """
        with self._lock:
            if session_id in self._sessions:
                logger.warning("Refusing to recreate live session %s...", session_id[:8])
                return None
            session = Session(
                session_id=session_id,
                callback_port=callback_port,
                created_at=self._clock(),
            )
            self.put(session_id, session)
            return session

    def put(self, session_id: str, session: Session) -> None:
        with self._lock:
            self._sessions[session_id] = session
            logger.debug("Stored session %s... (%s)", session_id[:8], session.state)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        """Delete a session. Returns True if it existed."""
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
            if removed:
                logger.debug("Deleted session %s...", session_id[:8])
            return removed

    def attach_tokens(self, session_id: str, tokens: SessionTokens) -> Optional[Session]:
        """
        Mark a pending session as fulfilled.

        Returns:
            The updated session, or None if the session is gone (reaped or
            deleted while the code exchange was in flight) or already fulfilled.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.tokens is not None:
                logger.warning("Session %s... is already fulfilled", session_id[:8])
                return None
            session.tokens = tokens
            logger.debug("Session %s... fulfilled", session_id[:8])
            return session

    def take_tokens(self, session_id: str) -> Optional[SessionTokens]:
        """
        Consume a fulfilled session's tokens.

        The session is removed under the lock before the tokens are returned,
        so a concurrent pickup for the same id observes nothing.

        Returns:
            The tokens, or None if the session is absent or still pending.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.tokens is None:
                return None
            del self._sessions[session_id]
            logger.debug("Session %s... consumed", session_id[:8])
            return session.tokens

    def reap_expired(self) -> int:
        """
        Remove every session older than the TTL.

        Returns:
            Number of sessions removed.
        """
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.created_at < cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]

        if expired:
            logger.info("Reaped %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def start_reaper(self, interval_seconds: float = 60) -> None:
        """Start the background reaper thread."""
        if self._reaper_thread and self._reaper_thread.is_alive():
            return

        self._reaper_stop.clear()

        def run_reaper() -> None:
            while not self._reaper_stop.wait(interval_seconds):
                try:
                    self.reap_expired()
                except Exception as e:
                    logger.error(f"Session reaper error: {e}", exc_info=True)

        self._reaper_thread = threading.Thread(
            target=run_reaper, name="session-reaper", daemon=True
        )
        self._reaper_thread.start()
        logger.info(
            "Session reaper started (interval %ss, ttl %ss)",
            interval_seconds,
            self.ttl_seconds,
        )

    def stop_reaper(self) -> None:
        """Stop the background reaper thread."""
        self._reaper_stop.set()
        if self._reaper_thread and self._reaper_thread.is_alive():
            self._reaper_thread.join(timeout=3.0)
        self._reaper_thread = None

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        with self._lock:
            fulfilled = sum(1 for s in self._sessions.values() if s.tokens is not None)
            return {
                "total_sessions": len(self._sessions),
                "pending": len(self._sessions) - fulfilled,
                "fulfilled": fulfilled,
            }
