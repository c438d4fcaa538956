"""
Confidential client secret provider for the relay.

The secret is immutable for the lifetime of the process, so it is fetched
once and cached. Concurrent first calls may each fetch it; they all store
the same value.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from ..core.config import RelayConfig

logger = logging.getLogger(__name__)


class ClientSecretUnavailable(Exception):
    """Raised when no client secret source is configured or reachable."""


def load_client_secrets_file(path: str) -> Dict[str, Any]:
    """
    Load a Google client_secret.json file.

    Returns:
        The "web" or "installed" section of the file.

    Raises:
        ValueError: If the file has neither section.
        IOError: If the file cannot be read.
    """
    with open(path, "r") as f:
        client_config = json.load(f)

    if "web" in client_config:
        return client_config["web"]
    elif "installed" in client_config:
        return client_config["installed"]
    raise ValueError("Invalid client secrets file format")


def fetch_from_secret_manager(project: str, name: str) -> str:
    """Read the latest version of a secret from Google Secret Manager."""
    from google.cloud import secretmanager

    client = secretmanager.SecretManagerServiceClient()
    secret_path = f"projects/{project}/secrets/{name}/versions/latest"
    response = client.access_secret_version(request={"name": secret_path})
    return response.payload.data.decode("utf-8")


class ClientSecretProvider:
    """
    Resolves the OAuth client secret on first use.

    Sources, in order: GOOGLE_OAUTH_CLIENT_SECRET, the configured
    client_secret.json, then Secret Manager.
    """

    def __init__(self, config: RelayConfig) -> None:
        self._config = config
        self._cached: Optional[str] = None

    def get_client_secret(self) -> str:
        if self._cached:
            return self._cached
        self._cached = self._fetch()
        return self._cached

    def _fetch(self) -> str:
        env_secret = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET")
        if env_secret:
            logger.info("Loaded OAuth client secret from environment variables")
            return env_secret

        path = self._config.client_secrets_file
        if path:
            try:
                secrets = load_client_secrets_file(path)
            except (IOError, ValueError, json.JSONDecodeError) as e:
                raise ClientSecretUnavailable(
                    f"Cannot read client secrets from {path}: {e}"
                ) from e
            logger.info(f"Loaded OAuth client secret from {path}")
            return secrets["client_secret"]

        if self._config.secret_project:
            logger.info(
                "Fetching OAuth client secret %s from Secret Manager",
                self._config.secret_name,
            )
            try:
                return fetch_from_secret_manager(
                    self._config.secret_project, self._config.secret_name
                )
            except Exception as e:
                raise ClientSecretUnavailable(
                    f"Secret Manager lookup failed: {e}"
                ) from e

        raise ClientSecretUnavailable(
            "OAuth client secret not configured. Set GOOGLE_OAUTH_CLIENT_SECRET, "
            "RELAY_CLIENT_SECRETS_FILE, or RELAY_SECRET_PROJECT."
        )
