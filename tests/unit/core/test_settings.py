"""Tests for environment-driven settings."""

import pytest

from signin.core.errors import ConfigurationError
from signin.core.settings import AppleSettings, FlowSettings
from signin.oidc.provider import APPLE_ENDPOINTS

from fake_apple import AppleKeyFile


@pytest.fixture
def apple_env(monkeypatch: pytest.MonkeyPatch, signing_keypair: AppleKeyFile) -> None:
    monkeypatch.setenv("APPLE_CLIENT_ID", "com.example.web")
    monkeypatch.setenv("APPLE_TEAM_ID", "TEAM123456")
    monkeypatch.setenv("APPLE_KEY_ID", "KEY1234567")
    monkeypatch.setenv("APPLE_PRIVATE_KEY", signing_keypair.private_key_pem.replace("\n", "\\n"))


class TestAppleSettings:
    """Tests for Apple credential loading."""

    def test_builds_provider(self, apple_env: None) -> None:
        provider = AppleSettings().to_provider()
        assert provider.name == "apple"
        assert provider.client.client_id == "com.example.web"
        assert provider.client.team_id == "TEAM123456"
        assert provider.client.key_id == "KEY1234567"
        assert provider.client.scope == "name email"
        assert provider.endpoints == APPLE_ENDPOINTS

    def test_scope_override(self, apple_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPLE_SCOPE", "email")
        assert AppleSettings().to_provider().client.scope == "email"

    def test_missing_values_named(self) -> None:
        with pytest.raises(ConfigurationError, match="APPLE_TEAM_ID"):
            AppleSettings(client_id="com.example.web").to_provider()

    def test_malformed_key(self, apple_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPLE_PRIVATE_KEY", "garbage")
        with pytest.raises(ConfigurationError):
            AppleSettings().to_provider()

    def test_key_not_in_repr(self, apple_env: None) -> None:
        provider = AppleSettings().to_provider()
        assert "signing_key" not in repr(provider.client)


class TestFlowSettings:
    """Tests for flow defaults and overrides."""

    def test_defaults(self) -> None:
        settings = FlowSettings()
        assert settings.state_token_length == 32
        assert settings.use_nonce is True
        assert settings.http_timeout == 10.0
        assert settings.callback_url == ""
        assert settings.jwks_min_refresh_interval == 10.0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SIGNIN_USE_NONCE", "false")
        monkeypatch.setenv("SIGNIN_JWKS_CACHE_TTL", "0")
        settings = FlowSettings()
        assert settings.use_nonce is False
        assert settings.jwks_cache_ttl == 0
