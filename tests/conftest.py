"""Shared test fixtures for the sign-in flow."""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from signin.api.deps import get_flow_session
from signin.core.app import create_app
from signin.crypto.keys import load_signing_key
from signin.crypto.types import ClientIdentity, KeySet
from signin.oidc.provider import APPLE_ENDPOINTS, ProviderIdentity

from fake_apple import CLIENT_ID, TEAM_ID, AppHooks, AppleKeyFile, FakeIdP, new_apple_key

_ENV_VARS = (
    "APPLE_CLIENT_ID",
    "APPLE_TEAM_ID",
    "APPLE_KEY_ID",
    "APPLE_PRIVATE_KEY",
    "APPLE_SCOPE",
    "SIGNIN_CALLBACK_URL",
    "SIGNIN_USE_NONCE",
    "SIGNIN_JWKS_CACHE_TTL",
    "SIGNIN_JWKS_MIN_REFRESH_INTERVAL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of settings under test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def signing_keypair() -> AppleKeyFile:
    """The client-secret signing key, as Apple's .p8 download."""
    return new_apple_key()


@pytest.fixture
def client_identity(signing_keypair: AppleKeyFile) -> ClientIdentity:
    return ClientIdentity(
        client_id=CLIENT_ID,
        team_id=TEAM_ID,
        key_id=signing_keypair.kid,
        signing_key=load_signing_key(signing_keypair.private_key_pem),
        scope="name email",
    )


@pytest.fixture
def provider(client_identity: ClientIdentity) -> ProviderIdentity:
    return ProviderIdentity(name="apple", client=client_identity, endpoints=APPLE_ENDPOINTS)


@pytest.fixture
def fake_idp(signing_keypair: AppleKeyFile) -> FakeIdP:
    return FakeIdP(signing_keypair)


@pytest.fixture
def key_set(fake_idp: FakeIdP) -> KeySet:
    return KeySet.model_validate({"keys": fake_idp.keys})


@pytest.fixture
async def http_client(fake_idp: FakeIdP) -> AsyncIterator[httpx.AsyncClient]:
    """An httpx client whose every request is answered by the fake IdP."""
    transport = httpx.MockTransport(fake_idp.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def app_hooks() -> AppHooks:
    return AppHooks()


@pytest.fixture
def flow_session() -> dict[str, Any]:
    """One browser's session, shared across requests."""
    return {}


@pytest.fixture
async def client(
    provider: ProviderIdentity,
    http_client: httpx.AsyncClient,
    app_hooks: AppHooks,
    flow_session: dict[str, Any],
) -> AsyncIterator[AsyncClient]:
    """An httpx test client for the app, with the fake IdP behind it."""
    app = create_app(
        resolve_identity=app_hooks.resolve_identity,
        on_authorization_failed=app_hooks.on_authorization_failed,
        provider=provider,
        http_client=http_client,
    )
    app.dependency_overrides[get_flow_session] = lambda: flow_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
