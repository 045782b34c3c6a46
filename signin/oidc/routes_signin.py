"""Sign-in endpoints: create, IdP callback, and show (finalize)."""

from collections.abc import MutableMapping
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import RedirectResponse

from signin.api.deps import (
    callback_url,
    get_controller,
    get_flow_session,
    load_flow_settings,
)
from signin.core.settings import FlowSettings
from signin.oidc.flow import AuthorizationFlowController
from signin.oidc.types import CallbackPayload

HTTP_SEE_OTHER = 303

Session = Annotated[MutableMapping[str, Any], Depends(get_flow_session)]
Controller = Annotated[AuthorizationFlowController, Depends(get_controller)]
Settings = Annotated[FlowSettings, Depends(load_flow_settings)]


def build_router(prefix: str = "/auth/apple") -> APIRouter:
    """Build the three sign-in routes under ``prefix``."""
    router = APIRouter(prefix=prefix)

    @router.post("", name="signin_create")
    async def create(
        request: Request,
        session: Session,
        controller: Controller,
        settings: Settings,
    ) -> RedirectResponse:
        """POST {prefix} -- start the flow and send the user to the IdP."""
        url = controller.initiate(session, callback_url(request, settings))
        return RedirectResponse(url=url, status_code=HTTP_SEE_OTHER)

    @router.post("/callback", name="signin_callback")
    async def callback(
        request: Request,
        form: Annotated[CallbackPayload, Form()],
    ) -> RedirectResponse:
        """POST {prefix}/callback -- IdP form post; bounce to a same-origin GET."""
        carried = AuthorizationFlowController.receive_callback(form)
        url = request.url_for("signin_show").include_query_params(**carried)
        return RedirectResponse(url=str(url), status_code=HTTP_SEE_OTHER)

    @router.get("", name="signin_show", response_model=None)
    async def show(
        request: Request,
        session: Session,
        controller: Controller,
        settings: Settings,
        q: Annotated[CallbackPayload, Query()],
    ) -> Any:
        """GET {prefix} -- validate state, exchange, verify, and resolve."""
        result = await controller.finalize(
            session,
            callback_url(request, settings),
            state=q.state,
            code=q.code,
            id_token=q.id_token,
            user=q.user,
            error=q.error,
        )
        return result.response

    return router
