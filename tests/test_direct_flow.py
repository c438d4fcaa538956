"""Tests for the direct (relay-less) sign-in strategy."""

import json
from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from google.auth.exceptions import RefreshError

from workspace_relay.agent.direct_flow import DirectHandshake, credential_from_google
from workspace_relay.utils.errors import (
    AuthenticationFailed,
    DomainRejected,
    TokenExchangeFailed,
)


@pytest.fixture
def client_secrets_file(tmp_path):
    path = tmp_path / "client_secret.json"
    path.write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "cid",
                    "client_secret": "csecret",
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            }
        )
    )
    return str(path)


class TestCredentialConversion:
    def test_naive_utc_expiry_becomes_epoch_ms(self):
        credentials = Mock(token="A", refresh_token="R")
        credentials.expiry = datetime(2023, 11, 14, 22, 13, 20)

        stored = credential_from_google(credentials)

        assert stored.access_token == "A"
        assert stored.refresh_token == "R"
        assert stored.expiry_date == 1_700_000_000_000


class TestDirectHandshake:
    def test_missing_client_secrets_fails(self, tmp_path):
        strategy = DirectHandshake(client_secrets_file=str(tmp_path / "missing.json"))

        with pytest.raises(AuthenticationFailed, match="not found"):
            strategy.authenticate()

    def test_domain_check(self, client_secrets_file, id_token_factory):
        strategy = DirectHandshake(client_secrets_file, allowed_domain="example.com")

        good = Mock(id_token=id_token_factory({"hd": "example.com"}))
        strategy._check_domain(good)

        bad = Mock(id_token=id_token_factory({"hd": "other.org"}))
        with pytest.raises(DomainRejected):
            strategy._check_domain(bad)

    def test_refresh_uses_local_client_secrets(self, client_secrets_file):
        strategy = DirectHandshake(client_secrets_file, allowed_domain="")

        def fake_refresh(credentials, request):
            credentials.token = "new"
            credentials.expiry = datetime(2023, 11, 14, 22, 13, 20)

        with patch(
            "workspace_relay.agent.direct_flow.Credentials.refresh",
            autospec=True,
            side_effect=fake_refresh,
        ):
            stored = strategy.refresh("R")

        assert stored.access_token == "new"
        assert stored.refresh_token == "R"

    def test_refresh_rejection_is_token_exchange_failure(self, client_secrets_file):
        strategy = DirectHandshake(client_secrets_file, allowed_domain="")

        with patch(
            "workspace_relay.agent.direct_flow.Credentials.refresh",
            side_effect=RefreshError("invalid_grant"),
        ):
            with pytest.raises(TokenExchangeFailed):
                strategy.refresh("revoked")
