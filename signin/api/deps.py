"""FastAPI dependency injection for the sign-in routes."""

from collections.abc import MutableMapping
from typing import Any

from fastapi import Request

from signin.core.errors import ConfigurationError
from signin.core.settings import FlowSettings
from signin.oidc.flow import AuthorizationFlowController


def load_flow_settings() -> FlowSettings:
    return FlowSettings()


def get_flow_session(request: Request) -> MutableMapping[str, Any]:
    """The browser session the state token lives in.

    Defaults to ``request.session``, which needs the application's session
    middleware. Override through ``app.dependency_overrides`` for other stores.
    """
    return request.session


def get_controller(request: Request) -> AuthorizationFlowController:
    """The controller ``create_app`` attached to the application state."""
    controller = getattr(request.app.state, "signin_controller", None)
    if controller is None:
        raise ConfigurationError("No sign-in controller is attached to the app")
    return controller


def callback_url(request: Request, settings: FlowSettings) -> str:
    """The redirect_uri sent to the IdP, identical at initiate and exchange."""
    if settings.callback_url:
        return settings.callback_url
    return str(request.url_for("signin_callback"))
