"""Tests for the relay's identity provider client and secret provider."""

import json
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from workspace_relay.auth.scopes import get_scopes
from workspace_relay.relay.client_secret import (
    ClientSecretProvider,
    ClientSecretUnavailable,
)
from workspace_relay.relay.google_oauth import (
    GOOGLE_TOKEN_URI,
    GoogleOAuthClient,
    decode_id_token_claims,
)
from workspace_relay.utils.errors import TokenExchangeFailed


class TestAuthorizationUrl:
    def test_hd_omitted_without_allowed_domain(self, relay_config):
        relay_config.allowed_domain = ""
        client = GoogleOAuthClient(relay_config, Mock(), http=Mock())

        query = parse_qs(urlparse(client.authorization_url("state-1")).query)

        assert "hd" not in query
        assert query["state"] == ["state-1"]
        assert query["scope"] == [" ".join(get_scopes())]


class TestTokenExchange:
    def setup_method(self):
        self.http = Mock()
        self.secrets = Mock()
        self.secrets.get_client_secret.return_value = "s3cret"

    def _client(self, config):
        return GoogleOAuthClient(config, self.secrets, http=self.http)

    def test_exchange_code_posts_form_to_token_endpoint(self, relay_config):
        response = Mock(status_code=200, ok=True)
        response.json.return_value = {"access_token": "a", "expires_in": 10}
        self.http.post.return_value = response

        result = self._client(relay_config).exchange_code("the-code")

        assert result["access_token"] == "a"
        args, kwargs = self.http.post.call_args
        assert args[0] == GOOGLE_TOKEN_URI
        assert kwargs["data"]["redirect_uri"] == relay_config.redirect_uri

    def test_error_body_with_200_still_fails(self, relay_config):
        response = Mock(status_code=200, ok=True)
        response.json.return_value = {"error": "invalid_request"}
        self.http.post.return_value = response

        with pytest.raises(TokenExchangeFailed) as exc_info:
            self._client(relay_config).exchange_code("c")

        assert exc_info.value.reason == "invalid_request"

    def test_non_json_error_uses_body_text(self, relay_config):
        response = Mock(status_code=503, ok=False, text="upstream unavailable")
        response.json.side_effect = ValueError("no json")
        self.http.post.return_value = response

        with pytest.raises(TokenExchangeFailed) as exc_info:
            self._client(relay_config).refresh("r")

        assert exc_info.value.status_code == 503
        assert exc_info.value.reason == "upstream unavailable"


class TestIdentityClaims:
    def test_decode_reads_payload(self, id_token_factory):
        token = id_token_factory({"email": "user@example.com", "hd": "example.com"})

        claims = decode_id_token_claims(token)

        assert claims["hd"] == "example.com"

    def test_decode_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_id_token_claims("not-a-jwt")

    def test_verification_uses_google_keys_when_enabled(self, relay_config):
        relay_config.verify_id_token = True
        client = GoogleOAuthClient(relay_config, Mock(), http=Mock())

        with patch(
            "workspace_relay.relay.google_oauth.google_id_token.verify_oauth2_token",
            return_value={"hd": "example.com"},
        ) as mock_verify:
            claims = client.identity_claims("token")

        assert claims == {"hd": "example.com"}
        assert mock_verify.call_args.kwargs["audience"] == relay_config.client_id


class TestClientSecretProvider:
    def test_env_secret_wins(self, relay_config, monkeypatch):
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "from-env")

        assert ClientSecretProvider(relay_config).get_client_secret() == "from-env"

    def test_reads_client_secrets_file(self, relay_config, tmp_path):
        path = tmp_path / "client_secret.json"
        path.write_text(json.dumps({"web": {"client_secret": "from-file"}}))
        relay_config.client_secrets_file = str(path)

        assert ClientSecretProvider(relay_config).get_client_secret() == "from-file"

    def test_secret_manager_fetched_once(self, relay_config):
        relay_config.client_secrets_file = None
        relay_config.secret_project = "my-project"
        provider = ClientSecretProvider(relay_config)

        with patch(
            "workspace_relay.relay.client_secret.fetch_from_secret_manager",
            return_value="from-sm",
        ) as mock_fetch:
            assert provider.get_client_secret() == "from-sm"
            assert provider.get_client_secret() == "from-sm"

        mock_fetch.assert_called_once_with("my-project", relay_config.secret_name)

    def test_unconfigured_raises(self, relay_config):
        relay_config.client_secrets_file = None
        relay_config.secret_project = None

        with pytest.raises(ClientSecretUnavailable):
            ClientSecretProvider(relay_config).get_client_secret()
