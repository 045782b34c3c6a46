"""Client-secret assertion minting using ES256."""

from datetime import UTC, datetime

import jwt

from signin.core.errors import ConfigurationError
from signin.crypto.types import ClientIdentity, ClientSecretClaims

CLIENT_SECRET_TTL = 60
CLIENT_SECRET_ALGORITHM = "ES256"


class ClientSecretSigner:
    """Signs the short-lived JWT the IdP accepts in place of a static secret."""

    def __init__(self, audience: str, algorithm: str = CLIENT_SECRET_ALGORITHM) -> None:
        self._audience = audience
        self._algorithm = algorithm

    def claims(self, identity: ClientIdentity, now: datetime) -> ClientSecretClaims:
        issued_at = int(now.timestamp())
        return ClientSecretClaims(
            iss=identity.team_id,
            aud=self._audience,
            sub=identity.client_id,
            iat=issued_at,
            exp=issued_at + CLIENT_SECRET_TTL,
        )

    def sign(self, identity: ClientIdentity, now: datetime | None = None) -> str:
        """Create a signed client secret valid for sixty seconds from ``now``."""
        now = now or datetime.now(UTC)
        payload = self.claims(identity, now).model_dump()
        try:
            return jwt.encode(
                payload,
                identity.signing_key,
                algorithm=self._algorithm,
                headers={"kid": identity.key_id},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise ConfigurationError(
                f"Unable to sign client secret with key {identity.key_id}"
            ) from exc
