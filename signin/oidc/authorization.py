"""Authorization request URL assembly."""

from urllib.parse import urlencode

from signin.oidc.provider import ProviderIdentity

RESPONSE_TYPE = "code"
RESPONSE_MODE = "form_post"


def build_authorization_url(
    provider: ProviderIdentity,
    *,
    redirect_uri: str,
    state: str,
    nonce: str | None = None,
) -> str:
    """Build the IdP authorize URL the user is redirected to."""
    params = {
        "client_id": provider.client.client_id,
        "redirect_uri": redirect_uri,
        "response_type": RESPONSE_TYPE,
        "response_mode": RESPONSE_MODE,
        "scope": provider.client.scope,
        "state": state,
    }
    if nonce is not None:
        params["nonce"] = nonce
    return f"{provider.endpoints.authorization_url}?{urlencode(params)}"
