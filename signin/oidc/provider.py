"""Identity provider endpoints and the provider identity handed to the flow."""

from pydantic import BaseModel, ConfigDict

from signin.crypto.types import ClientIdentity


class ProviderEndpoints(BaseModel):
    """Fixed facts about an IdP: where it lives and how it signs."""

    model_config = ConfigDict(frozen=True)

    issuer: str
    authorization_url: str
    token_url: str
    keys_url: str
    id_token_algorithm: str = "RS256"
    client_secret_algorithm: str = "ES256"


class ProviderIdentity(BaseModel):
    """A configured IdP variant: its endpoints plus our client credentials."""

    model_config = ConfigDict(frozen=True)

    name: str
    client: ClientIdentity
    endpoints: ProviderEndpoints


# https://developer.apple.com/documentation/sign_in_with_apple/sign_in_with_apple_rest_api
APPLE_ENDPOINTS = ProviderEndpoints(
    issuer="https://appleid.apple.com",
    authorization_url="https://appleid.apple.com/auth/authorize",
    token_url="https://appleid.apple.com/auth/token",
    keys_url="https://appleid.apple.com/auth/keys",
)
