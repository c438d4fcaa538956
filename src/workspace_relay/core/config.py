"""
Shared configuration for Workspace Relay.

This module centralizes configuration values for both halves of the system:
the publicly reachable relay service and the local agent that consumes
its tokens. All values come from environment variables (optionally loaded
from a .env file).
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_RELAY_PORT = 8080
DEFAULT_SESSION_TTL_SECONDS = 600
DEFAULT_REAPER_INTERVAL_SECONDS = 60
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 15.0
DEFAULT_LOGIN_TIMEOUT_SECONDS = 300.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

# Tokens this close to expiry are treated as already expired
EXPIRY_SAFETY_MARGIN_SECONDS = 60

TOKEN_FILE_NAME = "tokens.json"

AUTH_MODE_RELAY = "relay"
AUTH_MODE_DIRECT = "direct"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    return float(value)


class RelayConfig:
    """
    Configuration for the relay service.

    The relay owns the registered redirect URI and the confidential client
    secret, so everything here describes the public side of the handshake.
    """

    def __init__(self) -> None:
        self.host = os.getenv("RELAY_HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", str(DEFAULT_RELAY_PORT)))

        # Externally reachable URL (the registered redirect URI hangs off it)
        self.public_url = os.getenv(
            "RELAY_PUBLIC_URL", f"http://localhost:{self.port}"
        ).rstrip("/")

        self.client_id = os.getenv("GOOGLE_OAUTH_CLIENT_ID", "")
        self.client_secrets_file = os.getenv("RELAY_CLIENT_SECRETS_FILE")

        # Secret Manager location, used when no env or file secret is set
        self.secret_project = os.getenv("RELAY_SECRET_PROJECT")
        self.secret_name = os.getenv(
            "RELAY_SECRET_NAME", "google-workspace-mcp-client-secret"
        )

        self.allowed_domain = os.getenv("RELAY_ALLOWED_DOMAIN", "")

        self.session_ttl_seconds = int(
            os.getenv("RELAY_SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS))
        )
        self.reaper_interval_seconds = int(
            os.getenv(
                "RELAY_REAPER_INTERVAL_SECONDS", str(DEFAULT_REAPER_INTERVAL_SECONDS)
            )
        )
        self.provider_timeout_seconds = _env_float(
            "RELAY_PROVIDER_TIMEOUT_SECONDS", DEFAULT_PROVIDER_TIMEOUT_SECONDS
        )
        self.verify_id_token = _env_bool("RELAY_VERIFY_ID_TOKEN")
        self.log_level = os.getenv("RELAY_LOG_LEVEL", "INFO").upper()

    @property
    def redirect_uri(self) -> str:
        """The fixed redirect URI registered with the identity provider."""
        return f"{self.public_url}/auth/callback"

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the relay configuration (excluding secrets)."""
        return {
            "public_url": self.public_url,
            "redirect_uri": self.redirect_uri,
            "client_id_configured": bool(self.client_id),
            "allowed_domain": self.allowed_domain,
            "session_ttl_seconds": self.session_ttl_seconds,
            "reaper_interval_seconds": self.reaper_interval_seconds,
            "verify_id_token": self.verify_id_token,
        }


class AgentConfig:
    """Configuration for the local agent (credential resolver side)."""

    def __init__(self) -> None:
        self.relay_url = os.getenv("WORKSPACE_RELAY_URL", "http://localhost:8080").rstrip(
            "/"
        )
        self.credentials_dir = os.path.expanduser(
            os.getenv("WORKSPACE_RELAY_CREDENTIALS_DIR", "~/.google-workspace-mcp")
        )
        self.auth_mode = os.getenv("WORKSPACE_RELAY_AUTH_MODE", AUTH_MODE_RELAY).lower()

        login_timeout = _env_float(
            "WORKSPACE_RELAY_LOGIN_TIMEOUT_SECONDS", DEFAULT_LOGIN_TIMEOUT_SECONDS
        )
        # 0 disables the local listener timeout
        self.login_timeout_seconds: Optional[float] = login_timeout or None

        self.http_timeout_seconds = _env_float(
            "WORKSPACE_RELAY_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS
        )
        self.client_secrets_file = os.path.expanduser(
            os.getenv(
                "WORKSPACE_RELAY_CLIENT_SECRETS_FILE",
                os.path.join(self.credentials_dir, "client_secret.json"),
            )
        )
        self.quota_project = os.getenv("WORKSPACE_RELAY_QUOTA_PROJECT")

        # Direct mode only; the relay enforces its own domain in relay mode
        self.allowed_domain = os.getenv("WORKSPACE_RELAY_ALLOWED_DOMAIN", "")

    @property
    def token_path(self) -> str:
        return os.path.join(self.credentials_dir, TOKEN_FILE_NAME)


# Global configuration instances
_relay_config: Optional[RelayConfig] = None
_agent_config: Optional[AgentConfig] = None


def get_relay_config() -> RelayConfig:
    """Get the global relay configuration instance."""
    global _relay_config
    if _relay_config is None:
        _relay_config = RelayConfig()
    return _relay_config


def reload_relay_config() -> RelayConfig:
    """Reload the relay configuration from environment variables."""
    global _relay_config
    _relay_config = RelayConfig()
    return _relay_config


def get_agent_config() -> AgentConfig:
    """Get the global agent configuration instance."""
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig()
    return _agent_config


def reload_agent_config() -> AgentConfig:
    """Reload the agent configuration from environment variables."""
    global _agent_config
    _agent_config = AgentConfig()
    return _agent_config
