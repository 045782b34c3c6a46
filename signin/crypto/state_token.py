"""OAuth state token generation and constant-time validation."""

import hashlib
import hmac
import secrets

STATE_TOKEN_LENGTH = 32

# Bitcoin base58: no 0, O, I or l, and nothing that needs URL escaping.
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def generate_state_token(length: int = STATE_TOKEN_LENGTH) -> str:
    """Generate a cryptographically random base58 token."""
    if length <= 0:
        raise ValueError("State token length must be positive")
    return "".join(secrets.choice(BASE58_ALPHABET) for _ in range(length))


def validate_state_token(session_value: str | None, supplied_value: str | None) -> bool:
    """Return True only if both values are present and identical.

    Both sides are hashed to fixed-length digests first, so the comparison
    time depends neither on the mismatch position nor on the input lengths.
    """
    if not session_value or not supplied_value:
        return False
    expected = hashlib.sha256(session_value.encode()).digest()
    supplied = hashlib.sha256(supplied_value.encode()).digest()
    return hmac.compare_digest(expected, supplied)
