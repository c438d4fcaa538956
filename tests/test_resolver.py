"""Tests for the credential resolver's cache -> disk -> refresh -> sign-in order."""

from unittest.mock import Mock

import pytest

from workspace_relay.agent.handshake import HandshakeStrategy, RelayHandshake
from workspace_relay.agent.relay_client import RelayClient
from workspace_relay.agent.resolver import CredentialResolver, create_strategy
from workspace_relay.agent.token_store import StoredCredential, TokenFileStore
from workspace_relay.utils.errors import (
    AuthenticationFailed,
    ProviderDenied,
    TokenExchangeFailed,
)

NOW = 1_700_000_000_000
HOUR_MS = 3_600_000


class ResolverTestBase:
    @pytest.fixture(autouse=True)
    def _setup(self, tmp_path):
        self.token_path = tmp_path / "config" / "tokens.json"
        self.store = TokenFileStore(str(self.token_path))
        self.strategy = Mock(spec=HandshakeStrategy)
        self.resolver = CredentialResolver(
            store=self.store, strategy=self.strategy, clock=lambda: NOW
        )


class TestResolutionOrder(ResolverTestBase):
    def test_valid_disk_record_needs_no_network(self):
        self.store.save(StoredCredential("stored", "R", NOW + 120_000))

        assert self.resolver.get_access_token() == "stored"
        self.strategy.refresh.assert_not_called()
        self.strategy.authenticate.assert_not_called()

    def test_cache_serves_without_reading_disk(self):
        self.store.save(StoredCredential("stored", "R", NOW + HOUR_MS))
        self.resolver.get_access_token()
        self.store.load = Mock(side_effect=AssertionError("disk read"))

        assert self.resolver.get_access_token() == "stored"

    def test_expired_record_is_refreshed_and_persisted(self):
        self.store.save(StoredCredential("old", "R", NOW - HOUR_MS))
        self.strategy.refresh.return_value = StoredCredential("new", "R", NOW + HOUR_MS)

        assert self.resolver.get_access_token() == "new"
        self.strategy.refresh.assert_called_once_with("R")
        assert self.store.load().access_token == "new"
        self.strategy.authenticate.assert_not_called()

    def test_record_inside_safety_margin_counts_as_expired(self):
        self.store.save(StoredCredential("old", "R", NOW + 30_000))
        self.strategy.refresh.return_value = StoredCredential("new", "R", NOW + HOUR_MS)

        assert self.resolver.get_access_token() == "new"

    def test_failed_refresh_falls_through_to_sign_in(self):
        self.store.save(StoredCredential("old", "revoked", NOW - HOUR_MS))
        self.strategy.refresh.side_effect = TokenExchangeFailed("Token refresh failed")
        self.strategy.authenticate.return_value = StoredCredential(
            "fresh", "R2", NOW + HOUR_MS
        )

        assert self.resolver.get_access_token() == "fresh"
        assert self.store.load().refresh_token == "R2"

    def test_no_record_runs_sign_in_and_persists(self):
        self.strategy.authenticate.return_value = StoredCredential.from_token_response(
            {"access_token": "A", "refresh_token": "R", "expires_in": 3600}, now=NOW
        )

        assert self.resolver.get_access_token() == "A"
        assert self.store.load() == StoredCredential("A", "R", NOW + HOUR_MS)
        self.strategy.refresh.assert_not_called()

    def test_corrupt_record_triggers_sign_in(self):
        self.token_path.parent.mkdir(parents=True)
        self.token_path.write_text("{broken")
        self.strategy.authenticate.return_value = StoredCredential("A", "R", NOW + HOUR_MS)

        assert self.resolver.get_access_token() == "A"

    def test_sign_in_failure_is_fatal(self):
        self.strategy.authenticate.side_effect = ProviderDenied("access_denied")

        with pytest.raises(AuthenticationFailed):
            self.resolver.get_access_token()
        assert self.store.load() is None

    def test_listener_bind_failure_is_authentication_failure(self):
        self.strategy.authenticate.side_effect = OSError("Address already in use")

        with pytest.raises(AuthenticationFailed, match="Address already in use"):
            self.resolver.get_access_token()

    def test_refresh_io_error_falls_through_to_sign_in(self):
        self.store.save(StoredCredential("old", "R", NOW - HOUR_MS))
        self.strategy.refresh.side_effect = FileNotFoundError("client_secret.json")
        self.strategy.authenticate.return_value = StoredCredential("A", "R", NOW + HOUR_MS)

        assert self.resolver.get_access_token() == "A"


class TestRelayRefresh(ResolverTestBase):
    """Refresh through the relay endpoint, end to end through RelayClient."""

    def test_refresh_via_relay_updates_disk_record(self):
        http = Mock()
        response = Mock(status_code=200, ok=True)
        response.json.return_value = {"access_token": "new-access", "expires_in": 3600}
        http.post.return_value = response
        relay_client = RelayClient("https://relay.example.com", timeout=5, http=http)
        self.resolver.strategy = RelayHandshake(relay_client)
        self.store.save(StoredCredential("old", "R", NOW - HOUR_MS))

        assert self.resolver.get_access_token() == "new-access"

        stored = self.store.load()
        assert stored.access_token == "new-access"
        assert stored.refresh_token == "R"
        args, kwargs = http.post.call_args
        assert args[0] == "https://relay.example.com/auth/refresh"
        assert kwargs["json"] == {"refresh_token": "R"}

    def test_relay_refresh_rejection_falls_back_to_sign_in(self):
        http = Mock()
        response = Mock(status_code=400, ok=False)
        response.json.return_value = {"error": "refresh_failed"}
        http.post.return_value = response
        strategy = RelayHandshake(RelayClient("https://relay.example.com", http=http))
        strategy.authenticate = Mock(
            return_value=StoredCredential("A", "R2", NOW + HOUR_MS)
        )
        self.resolver.strategy = strategy
        self.store.save(StoredCredential("old", "R", NOW - HOUR_MS))

        assert self.resolver.get_access_token() == "A"


class TestSignOutAndStatus(ResolverTestBase):
    def test_status_without_credentials(self):
        assert self.resolver.get_status()["signed_in"] is False

    def test_status_reports_expiry(self):
        self.store.save(StoredCredential("A", "R", NOW - 1))

        status = self.resolver.get_status()

        assert status["signed_in"] is True
        assert status["valid"] is False
        assert status["has_refresh_token"] is True

    def test_sign_out_clears_cache_and_disk(self):
        self.store.save(StoredCredential("A", "R", NOW + HOUR_MS))
        self.resolver.get_access_token()

        assert self.resolver.sign_out() is True
        self.strategy.authenticate.return_value = StoredCredential(
            "B", "R", NOW + HOUR_MS
        )
        assert self.resolver.get_access_token() == "B"


class TestCreateStrategy:
    def test_relay_mode(self):
        assert isinstance(create_strategy("relay"), RelayHandshake)

    def test_direct_mode(self):
        from workspace_relay.agent.direct_flow import DirectHandshake

        assert isinstance(create_strategy("direct"), DirectHandshake)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            create_strategy("carrier-pigeon")
