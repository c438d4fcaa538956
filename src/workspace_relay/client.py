"""Collaborator helpers: Google API access over the resolved bearer token.

API formatters call these instead of handling credentials themselves. Any
error from credential resolution is fatal to the current operation; there
is no retry here.
"""
from typing import Any, Dict, Optional

import requests
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .agent.resolver import get_access_token
from .core.config import get_agent_config
from .utils.errors import RelayError

DEFAULT_TIMEOUT_SECONDS = 30


def bearer_headers(token: Optional[str] = None) -> Dict[str, str]:
    """Build request headers carrying the bearer token.

    Args:
        token: Access token; resolved through get_access_token() if omitted.

    Returns:
        Header dictionary, including x-goog-user-project when configured.
    """
    headers = {"Authorization": f"Bearer {token or get_access_token()}"}
    quota_project = get_agent_config().quota_project
    if quota_project:
        headers["x-goog-user-project"] = quota_project
    return headers


def authorized_fetch(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    http: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """GET a Google API URL with the bearer header and return its JSON body.

    Raises:
        AuthenticationFailed: If no access token can be obtained.
        RelayError: If the API answers with a non-2xx status.
    """
    headers = bearer_headers()
    response = (http or requests).get(
        url, params=params, headers=headers, timeout=DEFAULT_TIMEOUT_SECONDS
    )
    if not response.ok:
        raise RelayError(f"API error {response.status_code}: {response.text[:500]}")
    return response.json()


def build_service(name: str, version: str) -> Any:
    """Build a googleapiclient service authorized with the resolved token.

    Args:
        name: API name (e.g. "drive").
        version: API version (e.g. "v3").
    """
    creds = Credentials(token=get_access_token())
    return build(name, version, credentials=creds, cache_discovery=False)
