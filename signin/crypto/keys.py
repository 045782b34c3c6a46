"""EC signing key loading and JWK to public key conversion."""

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

from signin.core.errors import ConfigurationError, VerificationError
from signin.crypto.types import JWKEntry


def load_signing_key(private_key_pem: str) -> ec.EllipticCurvePrivateKey:
    """Load a P-256 private key from PEM (the contents of an Apple .p8 file).

    Environment variables often carry the PEM with literal ``\\n`` sequences;
    those are turned back into newlines before parsing.
    """
    pem = private_key_pem.replace("\\n", "\n").strip()
    try:
        loaded = serialization.load_pem_private_key(pem.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ConfigurationError("Signing key is not a valid PEM private key") from exc
    if not isinstance(loaded, ec.EllipticCurvePrivateKey):
        raise ConfigurationError("Signing key must be an elliptic-curve key")
    if not isinstance(loaded.curve, ec.SECP256R1):
        raise ConfigurationError("Signing key must be on the P-256 curve for ES256")
    return loaded


def jwk_to_public_key(entry: JWKEntry, algorithm: str) -> PublicKeyTypes:
    """Load the verification key for ``algorithm`` from a JWK entry."""
    try:
        return jwt.PyJWK(entry.model_dump(exclude_none=True), algorithm=algorithm).key
    except (jwt.PyJWKError, jwt.InvalidKeyError, ValueError) as exc:
        raise VerificationError(f"Key {entry.kid} is not a usable {algorithm} key") from exc
