"""Three-step authorization flow: initiate, callback carry, finalize."""

import logging
from collections.abc import Awaitable, Callable, MutableMapping
from datetime import UTC, datetime
from typing import Any

import httpx

from signin.core.errors import (
    ConfigurationError,
    ForgeryError,
    ProtocolError,
    SignInError,
    VerificationError,
)
from signin.core.settings import FlowSettings
from signin.crypto.id_token import IdentityTokenVerifier
from signin.crypto.state_token import (
    STATE_TOKEN_LENGTH,
    generate_state_token,
    validate_state_token,
)
from signin.oidc.authorization import build_authorization_url
from signin.oidc.key_set import KeySetFetcher
from signin.oidc.provider import ProviderIdentity
from signin.oidc.token_exchange import TokenExchangeClient
from signin.oidc.types import AuthorizedIdentity, CallbackPayload, FlowResult, FlowState

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "oauth_state_token"
SESSION_NONCE_KEY = "oauth_nonce"
SESSION_FLOW_KEY = "oauth_flow_state"

ResolveIdentity = Callable[[AuthorizedIdentity], Awaitable[Any]]
AuthorizationFailed = Callable[[SignInError], Awaitable[Any]]
Session = MutableMapping[str, Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuthorizationFlowController:
    """Sequences state, exchange and verification for one provider.

    The application supplies ``resolve_identity`` (called only with a fully
    verified identity) and ``on_authorization_failed`` (called for exchange and
    verification failures). Both are mandatory.
    """

    def __init__(
        self,
        provider: ProviderIdentity,
        *,
        resolve_identity: ResolveIdentity,
        on_authorization_failed: AuthorizationFailed,
        key_fetcher: KeySetFetcher | None = None,
        exchange_client: TokenExchangeClient | None = None,
        verifier: IdentityTokenVerifier | None = None,
        state_token_length: int = STATE_TOKEN_LENGTH,
        use_nonce: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not callable(resolve_identity):
            raise ConfigurationError("resolve_identity hook is required")
        if not callable(on_authorization_failed):
            raise ConfigurationError("on_authorization_failed hook is required")

        endpoints = provider.endpoints
        self._provider = provider
        self._resolve_identity = resolve_identity
        self._on_authorization_failed = on_authorization_failed
        self._keys = key_fetcher or KeySetFetcher(endpoints.keys_url)
        self._exchange = exchange_client or TokenExchangeClient(endpoints)
        self._verifier = verifier or IdentityTokenVerifier(
            endpoints.issuer, algorithm=endpoints.id_token_algorithm
        )
        self._state_token_length = state_token_length
        self._use_nonce = use_nonce
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        provider: ProviderIdentity,
        settings: FlowSettings,
        *,
        resolve_identity: ResolveIdentity,
        on_authorization_failed: AuthorizationFailed,
        http_client: httpx.AsyncClient | None = None,
    ) -> "AuthorizationFlowController":
        """Wire the default collaborators from ``FlowSettings``."""
        endpoints = provider.endpoints
        return cls(
            provider,
            resolve_identity=resolve_identity,
            on_authorization_failed=on_authorization_failed,
            key_fetcher=KeySetFetcher(
                endpoints.keys_url,
                http_client=http_client,
                timeout=settings.http_timeout,
                cache_ttl=settings.jwks_cache_ttl,
                max_tries=settings.jwks_max_tries,
                min_refresh_interval=settings.jwks_min_refresh_interval,
            ),
            exchange_client=TokenExchangeClient(
                endpoints, http_client=http_client, timeout=settings.http_timeout
            ),
            verifier=IdentityTokenVerifier(
                endpoints.issuer,
                algorithm=endpoints.id_token_algorithm,
                leeway=settings.id_token_leeway,
            ),
            state_token_length=settings.state_token_length,
            use_nonce=settings.use_nonce,
        )

    @property
    def provider(self) -> ProviderIdentity:
        return self._provider

    def initiate(self, session: Session, redirect_uri: str) -> str:
        """Store a fresh state (and nonce) in the session; return the authorize URL."""
        state = generate_state_token(self._state_token_length)
        session[SESSION_STATE_KEY] = state

        nonce = None
        if self._use_nonce:
            nonce = generate_state_token(self._state_token_length)
            session[SESSION_NONCE_KEY] = nonce
        else:
            session.pop(SESSION_NONCE_KEY, None)

        session[SESSION_FLOW_KEY] = FlowState.PENDING_CALLBACK.value
        return build_authorization_url(
            self._provider, redirect_uri=redirect_uri, state=state, nonce=nonce
        )

    @staticmethod
    def receive_callback(payload: CallbackPayload) -> dict[str, str]:
        """Return the query parameters to carry to the same-origin finalize step.

        The IdP's cross-origin form post arrives without the session cookie, so
        nothing is validated here.
        """
        carried = payload.model_dump(exclude_none=True)
        if payload.error is not None:
            carried.pop("code", None)
            carried.pop("id_token", None)
        return carried

    async def finalize(
        self,
        session: Session,
        redirect_uri: str,
        *,
        state: str | None,
        code: str | None = None,
        id_token: str | None = None,
        user: str | None = None,
        error: str | None = None,
    ) -> FlowResult:
        """Validate state, then exchange and verify; hand the result to a hook.

        Raises ForgeryError before any network call when the state token does
        not match. ConfigurationError propagates unchanged.
        """
        stored_state = session.pop(SESSION_STATE_KEY, None)
        stored_nonce = session.pop(SESSION_NONCE_KEY, None)
        if not validate_state_token(stored_state, state):
            session[SESSION_FLOW_KEY] = FlowState.FAILED.value
            logger.warning(
                "Authorization %s rejected: state token is inauthentic",
                self._provider.name,
            )
            raise ForgeryError("The OAuth state token is inauthentic.")

        try:
            identity = await self._authorize(
                redirect_uri,
                code=code,
                id_token=id_token,
                user=user,
                error=error,
                nonce=stored_nonce,
            )
        except (ProtocolError, VerificationError) as exc:
            session[SESSION_FLOW_KEY] = FlowState.FAILED.value
            logger.info(
                "Authorization %s failed",
                self._provider.name,
                extra={"error_type": type(exc).__name__, "reason": str(exc)},
            )
            response = await self._on_authorization_failed(exc)
            return FlowResult(state=FlowState.FAILED, error=exc, response=response)

        session[SESSION_FLOW_KEY] = FlowState.RESOLVED.value
        logger.info("Authorization %s succeeded", self._provider.name)
        response = await self._resolve_identity(identity)
        return FlowResult(state=FlowState.RESOLVED, identity=identity, response=response)

    async def _authorize(
        self,
        redirect_uri: str,
        *,
        code: str | None,
        id_token: str | None,
        user: str | None,
        error: str | None,
        nonce: str | None,
    ) -> AuthorizedIdentity:
        if error is not None:
            raise ProtocolError(f"IdP reported {error}", error=error)
        if self._use_nonce and not nonce:
            raise VerificationError("No nonce was recorded for this session")

        client = self._provider.client
        if id_token is None:
            if not code:
                raise ProtocolError("Callback carried no authorization code")
            tokens = await self._exchange.exchange(client, code, redirect_uri, self._clock())
            id_token = tokens.id_token

        kid = self._verifier.key_id(id_token)
        key_set = await self._keys.fetch()
        if key_set.find(kid) is None:
            # The IdP may have rotated keys since the cached set was fetched.
            key_set = await self._keys.fetch(force=True)

        claims = self._verifier.verify(
            id_token,
            client,
            key_set,
            now=self._clock(),
            nonce=nonce if self._use_nonce else None,
        )
        return AuthorizedIdentity.from_claims(claims, user)
