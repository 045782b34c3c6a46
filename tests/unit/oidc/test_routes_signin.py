"""Tests for the sign-in endpoints."""

from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient

from signin.core.errors import ForgeryError, ProtocolError
from signin.oidc.flow import SESSION_NONCE_KEY, SESSION_STATE_KEY

from fake_apple import SUBJECT, AppHooks, FakeIdP

HTTP_OK = 200
HTTP_SEE_OTHER = 303
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403


class TestCreate:
    """Tests for POST /auth/apple."""

    async def test_redirects_to_apple(
        self, client: AsyncClient, flow_session: dict[str, Any]
    ) -> None:
        resp = await client.post("/auth/apple", follow_redirects=False)
        assert resp.status_code == HTTP_SEE_OTHER
        loc = urlparse(resp.headers["location"])
        assert loc.netloc == "appleid.apple.com"
        assert loc.path == "/auth/authorize"
        qs = parse_qs(loc.query)
        assert qs["state"] == [flow_session[SESSION_STATE_KEY]]
        assert qs["redirect_uri"] == ["http://test/auth/apple/callback"]
        assert qs["response_mode"] == ["form_post"]

    async def test_configured_callback_url(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SIGNIN_CALLBACK_URL", "https://app.example.com/cb")
        resp = await client.post("/auth/apple", follow_redirects=False)
        qs = parse_qs(urlparse(resp.headers["location"]).query)
        assert qs["redirect_uri"] == ["https://app.example.com/cb"]


class TestCallback:
    """Tests for POST /auth/apple/callback."""

    async def test_carries_params_to_show(
        self, client: AsyncClient, flow_session: dict[str, Any], fake_idp: FakeIdP
    ) -> None:
        resp = await client.post(
            "/auth/apple/callback",
            data={"code": "valid-code", "state": "not-checked-here"},
            follow_redirects=False,
        )
        assert resp.status_code == HTTP_SEE_OTHER
        loc = urlparse(resp.headers["location"])
        assert loc.path == "/auth/apple"
        assert parse_qs(loc.query) == {"code": ["valid-code"], "state": ["not-checked-here"]}
        assert flow_session == {}
        assert fake_idp.token_requests == []

    async def test_carries_idp_error(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/auth/apple/callback",
            data={"state": "s1", "error": "user_cancelled_authorize"},
            follow_redirects=False,
        )
        qs = parse_qs(urlparse(resp.headers["location"]).query)
        assert qs == {"state": ["s1"], "error": ["user_cancelled_authorize"]}


class TestShow:
    """Tests for GET /auth/apple."""

    async def test_resolves_identity(
        self,
        client: AsyncClient,
        flow_session: dict[str, Any],
        fake_idp: FakeIdP,
        app_hooks: AppHooks,
    ) -> None:
        await client.post("/auth/apple", follow_redirects=False)
        fake_idp.nonce = flow_session[SESSION_NONCE_KEY]
        state = flow_session[SESSION_STATE_KEY]

        resp = await client.get("/auth/apple", params={"code": "valid-code", "state": state})
        assert resp.status_code == HTTP_OK
        assert resp.json()["sub"] == SUBJECT
        assert len(app_hooks.resolved) == 1

    async def test_forged_state_routed_to_failure_hook(
        self,
        client: AsyncClient,
        fake_idp: FakeIdP,
        app_hooks: AppHooks,
    ) -> None:
        await client.post("/auth/apple", follow_redirects=False)
        resp = await client.get("/auth/apple", params={"code": "valid-code", "state": "forged"})
        assert resp.status_code == HTTP_FORBIDDEN
        assert resp.json() == {"error": "ForgeryError"}
        assert isinstance(app_hooks.failed[0], ForgeryError)
        assert app_hooks.resolved == []
        assert fake_idp.token_requests == []

    async def test_exchange_failure_routed_to_failure_hook(
        self,
        client: AsyncClient,
        flow_session: dict[str, Any],
        app_hooks: AppHooks,
    ) -> None:
        await client.post("/auth/apple", follow_redirects=False)
        state = flow_session[SESSION_STATE_KEY]
        resp = await client.get("/auth/apple", params={"code": "expired", "state": state})
        assert resp.status_code == HTTP_UNAUTHORIZED
        assert isinstance(app_hooks.failed[0], ProtocolError)
        assert app_hooks.resolved == []
