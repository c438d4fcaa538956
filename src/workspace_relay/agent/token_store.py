"""
Token Store for the Workspace Relay local agent.

Persists the last obtained token pair to a single JSON file under a
per-user directory. The directory is created owner-only (0700) and the
file is written owner-only (0600).
"""

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.config import EXPIRY_SAFETY_MARGIN_SECONDS, get_agent_config

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StoredCredential:
    """Token pair with an absolute expiry in epoch milliseconds."""

    access_token: str
    refresh_token: Optional[str]
    expiry_date: int

    def is_valid(
        self,
        now: Optional[int] = None,
        margin_seconds: int = EXPIRY_SAFETY_MARGIN_SECONDS,
    ) -> bool:
        """True while the token is usable beyond the safety margin."""
        if now is None:
            now = now_ms()
        return self.expiry_date > now + margin_seconds * 1000

    @classmethod
    def from_token_response(
        cls,
        data: Dict[str, Any],
        fallback_refresh_token: Optional[str] = None,
        now: Optional[int] = None,
    ) -> "StoredCredential":
        """
        Build a credential from a relay token payload.

        Args:
            data: Payload with access_token, expires_in and optionally refresh_token.
            fallback_refresh_token: Kept when the payload carries no new refresh token.
            now: Current time in epoch milliseconds.

        Raises:
            KeyError, ValueError, TypeError: If the payload is malformed.
        """
        if now is None:
            now = now_ms()
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token missing from token response")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or fallback_refresh_token,
            expiry_date=now + int(data["expires_in"]) * 1000,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry_date": self.expiry_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredCredential":
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token missing from stored credential")
        refresh_token = data.get("refresh_token")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("refresh_token in stored credential is not a string")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expiry_date=int(data["expiry_date"]),
        )


class TokenFileStore:
    """Credential store backed by one owner-only JSON file."""

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize the token file store.

        Args:
            path: Token file path. If None, uses tokens.json under
                  WORKSPACE_RELAY_CREDENTIALS_DIR (~/.google-workspace-mcp).
        """
        self.path = path or get_agent_config().token_path
        self.base_dir = os.path.dirname(self.path)

    def _ensure_dir_exists(self) -> None:
        if not os.path.isdir(self.base_dir):
            os.makedirs(self.base_dir, mode=0o700, exist_ok=True)
            logger.info(f"Created credentials directory: {self.base_dir}")

    def load(self) -> Optional[StoredCredential]:
        """
        Load the stored credential.

        A missing, unreadable or corrupt file reads as absent, which sends
        the caller to re-authentication.
        """
        if not os.path.exists(self.path):
            logger.debug("No token file found at %s", self.path)
            return None

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            return StoredCredential.from_dict(data)
        except (IOError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

    def save(self, credential: StoredCredential) -> None:
        """Write the credential atomically with owner-only permissions."""
        self._ensure_dir_exists()

        fd, temp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        try:
            os.chmod(temp_path, 0o600)
            with os.fdopen(fd, "w") as f:
                json.dump(credential.to_dict(), f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.info("Stored credentials at %s", self.path)

    def delete(self) -> bool:
        """Delete the token file. Returns True if a file was removed."""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        logger.info("Deleted credentials at %s", self.path)
        return True
