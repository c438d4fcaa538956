"""Custom exceptions for Workspace Relay.

This module provides structured error handling with specific exception types
for each way the authorization handshake can fail. All exceptions inherit
from RelayError.
"""
from typing import Optional


class RelayError(Exception):
    """Base exception for all workspace-relay errors.

    Attributes:
        message: Human-readable error description.
        session_id: Optional handshake session the error relates to.
    """

    def __init__(self, message: str, session_id: Optional[str] = None) -> None:
        self.message = message
        self.session_id = session_id
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message, optionally including a truncated session ID."""
        if self.session_id:
            return f"{self.message} (session: {self.session_id[:8]}...)"
        return self.message


class InvalidRequest(RelayError):
    """Raised when a session id or callback port is malformed."""
    pass


class SessionNotFound(RelayError):
    """Raised when a session is expired, already consumed, or never existed."""
    pass


class ProviderDenied(RelayError):
    """Raised when the user declined consent or the provider reported an error."""
    pass


class DomainRejected(RelayError):
    """Raised when the identity's organizational domain is not the allowed one.

    Attributes:
        domain: The domain claim that was presented (may be None).
        expected: The configured allowed domain.
    """

    def __init__(
        self,
        domain: Optional[str],
        expected: str,
        session_id: Optional[str] = None,
    ) -> None:
        self.domain = domain
        self.expected = expected
        super().__init__(
            f"Identity domain '{domain}' is not allowed (expected '{expected}')",
            session_id,
        )


class TokenExchangeFailed(RelayError):
    """Raised when a code or refresh exchange fails.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        reason: Provider-supplied error description, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(message, session_id)


class AuthenticationFailed(RelayError):
    """Raised when every credential resolution fallback has failed."""
    pass


def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "Sign-in").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, RelayError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
