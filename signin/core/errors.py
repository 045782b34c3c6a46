"""Error taxonomy for the sign-in flow."""


class SignInError(Exception):
    """Base class for every sign-in failure."""


class ForgeryError(SignInError):
    """The OAuth state token is missing or does not match the session."""


class ProtocolError(SignInError):
    """The IdP rejected or garbled the authorization-code exchange."""

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.description = description


class VerificationError(SignInError):
    """An identity token failed a signature, claim, or key-set check."""


class TransientError(SignInError):
    """The IdP key set could not be fetched; safe to retry."""


class ConfigurationError(SignInError):
    """Signing material or required settings are missing or malformed."""
