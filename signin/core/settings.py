"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from signin.core.errors import ConfigurationError
from signin.crypto.keys import load_signing_key
from signin.crypto.types import ClientIdentity
from signin.oidc.provider import APPLE_ENDPOINTS, ProviderIdentity

STATE_TOKEN_LENGTH_DEFAULT = 32
HTTP_TIMEOUT_DEFAULT = 10.0
JWKS_CACHE_TTL_DEFAULT = 3600
JWKS_MAX_TRIES_DEFAULT = 3
JWKS_MIN_REFRESH_INTERVAL_DEFAULT = 10.0


class AppleSettings(BaseSettings):
    """Sign in with Apple client credentials."""

    model_config = SettingsConfigDict(env_prefix="APPLE_")

    client_id: str = ""
    team_id: str = ""
    key_id: str = ""
    private_key: str = ""
    scope: str = "name email"

    def to_provider(self) -> ProviderIdentity:
        """Build the Apple provider identity, loading the signing key once."""
        missing = [
            name
            for name in ("client_id", "team_id", "key_id", "private_key")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                "Missing Apple settings: "
                + ", ".join(f"APPLE_{name.upper()}" for name in missing)
            )
        identity = ClientIdentity(
            client_id=self.client_id,
            team_id=self.team_id,
            key_id=self.key_id,
            signing_key=load_signing_key(self.private_key),
            scope=self.scope,
        )
        return ProviderIdentity(name="apple", client=identity, endpoints=APPLE_ENDPOINTS)


class FlowSettings(BaseSettings):
    """Flow tuning knobs shared by every provider."""

    model_config = SettingsConfigDict(env_prefix="SIGNIN_")

    state_token_length: int = STATE_TOKEN_LENGTH_DEFAULT
    use_nonce: bool = True
    http_timeout: float = HTTP_TIMEOUT_DEFAULT
    jwks_cache_ttl: int = JWKS_CACHE_TTL_DEFAULT
    jwks_max_tries: int = JWKS_MAX_TRIES_DEFAULT
    jwks_min_refresh_interval: float = JWKS_MIN_REFRESH_INTERVAL_DEFAULT
    id_token_leeway: int = 0
    callback_url: str = ""
