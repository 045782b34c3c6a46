"""Type definitions for client identity, JWKS, and JWT claim sets."""

from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey
from pydantic import BaseModel, ConfigDict, Field


class ClientIdentity(BaseModel):
    """Process-wide OAuth client credentials, loaded once at startup."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    client_id: str
    team_id: str
    key_id: str
    signing_key: EllipticCurvePrivateKey = Field(repr=False)
    scope: str = ""


class JWKEntry(BaseModel):
    """Single JWK entry in a JWKS response."""

    model_config = ConfigDict(extra="allow")

    kty: str
    kid: str
    use: str | None = None
    alg: str | None = None


class KeySet(BaseModel):
    """JSON Web Key Set published by the IdP."""

    keys: list[JWKEntry]

    def find(self, kid: str) -> JWKEntry | None:
        """Return the key tagged with ``kid``, if any."""
        for entry in self.keys:
            if entry.kid == kid:
                return entry
        return None

    def kids(self) -> list[str]:
        return [entry.kid for entry in self.keys]


class ClientSecretClaims(BaseModel):
    """Claim set of the client-secret assertion."""

    iss: str
    aud: str
    sub: str
    iat: int
    exp: int
