"""Shared fixtures for workspace-relay tests."""

import base64
import json
import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../src"))

from workspace_relay.core.config import RelayConfig  # noqa: E402

SESSION_ID = "0123456789abcdef0123456789abcdef"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def make_id_token(claims: dict) -> str:
    """Build an unsigned-looking JWT carrying the given claims."""
    header = _b64(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
    payload = _b64(json.dumps(claims).encode())
    return f"{header}.{payload}.{_b64(b'signature')}"


@pytest.fixture
def id_token_factory():
    return make_id_token


@pytest.fixture
def relay_config(monkeypatch):
    """Relay configuration with deterministic values."""
    monkeypatch.delenv("GOOGLE_OAUTH_CLIENT_SECRET", raising=False)
    config = RelayConfig()
    config.client_id = "client-123.apps.googleusercontent.com"
    config.public_url = "https://relay.example.com"
    config.allowed_domain = "example.com"
    config.verify_id_token = False
    config.provider_timeout_seconds = 5.0
    return config
