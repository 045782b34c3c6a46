"""Type definitions for the sign-in flow."""

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from signin.core.errors import SignInError, VerificationError

logger = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """IdP token endpoint response. Only ``id_token`` is used."""

    model_config = ConfigDict(extra="allow")

    id_token: str
    access_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = None
    refresh_token: str | None = None


class CallbackPayload(BaseModel):
    """Form fields the IdP posts to the callback URL."""

    state: str | None = None
    code: str | None = None
    id_token: str | None = None
    user: str | None = None
    error: str | None = None


class UserName(BaseModel):
    firstName: str | None = None  # noqa: N815
    lastName: str | None = None  # noqa: N815


class UserPayload(BaseModel):
    """The ``user`` JSON Apple posts on the first sign-in only."""

    name: UserName | None = None
    email: str | None = None

    def display_name(self) -> str | None:
        if self.name is None:
            return None
        parts = [p for p in (self.name.firstName, self.name.lastName) if p]
        return " ".join(parts) or None


def _as_bool(value: Any) -> bool | None:
    """Apple sends some boolean claims as the strings "true"/"false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true"
    return None


class AuthorizedIdentity(BaseModel):
    """Verified identity handed to the application's resolve hook."""

    subject: str
    email: str | None = None
    email_verified: bool | None = None
    is_private_email: bool | None = None
    name: str | None = None
    claims: dict[str, Any]

    @classmethod
    def from_claims(
        cls, claims: dict[str, Any], user: str | None = None
    ) -> "AuthorizedIdentity":
        """Build from verified claims plus the optional posted ``user`` JSON.

        Raises VerificationError when a claim has an unexpected type.
        """
        name = None
        if user:
            try:
                name = UserPayload.model_validate_json(user).display_name()
            except ValidationError:
                logger.warning("Ignoring malformed user payload from callback")
        try:
            return cls(
                subject=claims.get("sub"),
                email=claims.get("email"),
                email_verified=_as_bool(claims.get("email_verified")),
                is_private_email=_as_bool(claims.get("is_private_email")),
                name=name,
                claims=claims,
            )
        except ValidationError as exc:
            raise VerificationError("Identity token claims have unexpected types") from exc


class FlowState(StrEnum):
    """Lifecycle of one authorization attempt."""

    IDLE = "idle"
    PENDING_CALLBACK = "pending_callback"
    RESOLVED = "resolved"
    FAILED = "failed"


class FlowResult(BaseModel):
    """Outcome of finalize, carrying whatever the application hook returned."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: FlowState
    identity: AuthorizedIdentity | None = None
    error: SignInError | None = None
    response: Any = None
