"""Identity token verification against the IdP's published key set."""

import hmac
from datetime import UTC, datetime
from typing import Any

import jwt
from jwt.types import Options

from signin.core.errors import VerificationError
from signin.crypto.keys import jwk_to_public_key
from signin.crypto.types import ClientIdentity, KeySet

ID_TOKEN_ALGORITHM = "RS256"
REQUIRED_CLAIMS = ["iss", "aud", "exp", "iat", "sub"]


def _numeric_claim(claims: dict[str, Any], name: str) -> float:
    value = claims.get(name)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise VerificationError(f"Identity token claim {name!r} is not a timestamp")
    return float(value)


class IdentityTokenVerifier:
    """Verifies IdP-issued id_tokens. All checks must pass; nothing is partially trusted."""

    def __init__(
        self,
        issuer: str,
        algorithm: str = ID_TOKEN_ALGORITHM,
        leeway: int = 0,
    ) -> None:
        self._issuer = issuer
        self._algorithm = algorithm
        self._leeway = leeway

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def key_id(self, id_token: str) -> str:
        """Return the ``kid`` of a token whose header requests the expected algorithm."""
        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as exc:
            raise VerificationError("Identity token header is malformed") from exc

        alg = header.get("alg")
        if alg != self._algorithm:
            raise VerificationError(
                f"Identity token algorithm {alg!r} is not {self._algorithm}"
            )
        kid = header.get("kid")
        if not kid:
            raise VerificationError("Identity token header has no key id")
        return kid

    def verify(
        self,
        id_token: str,
        identity: ClientIdentity,
        key_set: KeySet,
        now: datetime | None = None,
        nonce: str | None = None,
    ) -> dict[str, Any]:
        """Verify signature, issuer, audience, time bounds and nonce; return the claims."""
        now = now or datetime.now(UTC)
        kid = self.key_id(id_token)

        entry = key_set.find(kid)
        if entry is None:
            raise VerificationError(f"Key {kid} is not in the IdP key set")
        if entry.alg is not None and entry.alg != self._algorithm:
            raise VerificationError(f"Key {kid} is published for {entry.alg}")
        public_key = jwk_to_public_key(entry, self._algorithm)

        # Time bounds are checked below against the caller's clock.
        opts: Options = {
            "require": REQUIRED_CLAIMS,
            "verify_exp": False,
            "verify_iat": False,
            "verify_nbf": False,
        }
        try:
            claims = jwt.decode(
                id_token,
                public_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                audience=identity.client_id,
                options=opts,
            )
        except jwt.PyJWTError as exc:
            raise VerificationError(f"Identity token rejected: {exc}") from exc

        self._check_time_bounds(claims, now)
        if nonce is not None:
            self._check_nonce(claims, nonce)
        return claims

    def _check_time_bounds(self, claims: dict[str, Any], now: datetime) -> None:
        timestamp = now.timestamp()
        issued_at = _numeric_claim(claims, "iat")
        expires_at = _numeric_claim(claims, "exp")
        if issued_at - self._leeway > timestamp:
            raise VerificationError("Identity token was issued in the future")
        if expires_at + self._leeway < timestamp:
            raise VerificationError("Identity token has expired")

    @staticmethod
    def _check_nonce(claims: dict[str, Any], expected: str) -> None:
        supplied = claims.get("nonce")
        if not isinstance(supplied, str) or not hmac.compare_digest(
            supplied.encode(), expected.encode()
        ):
            raise VerificationError("Identity token nonce does not match")
