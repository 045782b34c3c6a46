"""FastAPI application factory mounting the Sign in with Apple flow."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from starlette.responses import Response

from signin.core.errors import ForgeryError
from signin.core.settings import AppleSettings, FlowSettings
from signin.oidc.flow import (
    AuthorizationFailed,
    AuthorizationFlowController,
    ResolveIdentity,
)
from signin.oidc.provider import ProviderIdentity
from signin.oidc.routes_signin import build_router


def create_app(
    *,
    resolve_identity: ResolveIdentity,
    on_authorization_failed: AuthorizationFailed,
    provider: ProviderIdentity | None = None,
    http_client: httpx.AsyncClient | None = None,
    prefix: str = "/auth/apple",
) -> FastAPI:
    """Build the application. Both hooks must return a Starlette response.

    The state token lives in ``request.session``, so the caller must add
    ``starlette.middleware.sessions.SessionMiddleware`` (or another session
    middleware) before serving, or override ``get_flow_session``.
    """
    settings = FlowSettings()
    provider = provider or AppleSettings().to_provider()
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(
        title="Sign in with Apple",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.signin_controller = AuthorizationFlowController.from_settings(
        provider,
        settings,
        resolve_identity=resolve_identity,
        on_authorization_failed=on_authorization_failed,
        http_client=client,
    )

    async def _forgery_handler(_request: Request, exc: Exception) -> Response:
        assert isinstance(exc, ForgeryError)
        return await on_authorization_failed(exc)

    app.add_exception_handler(ForgeryError, _forgery_handler)
    app.include_router(build_router(prefix))

    return app
