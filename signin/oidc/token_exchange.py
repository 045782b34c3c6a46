"""Authorization code to identity token exchange."""

import logging
from datetime import datetime

import httpx
from pydantic import ValidationError

from signin.core.errors import ProtocolError
from signin.crypto.client_secret import ClientSecretSigner
from signin.crypto.types import ClientIdentity
from signin.oidc.provider import ProviderEndpoints
from signin.oidc.types import TokenResponse

logger = logging.getLogger(__name__)

GRANT_TYPE = "authorization_code"
HTTP_TIMEOUT_DEFAULT = 10.0


def _error_from_body(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("error"), body.get("error_description")


class TokenExchangeClient:
    """Redeems a single-use authorization code at the IdP token endpoint.

    Never retries: the code is consumed by the first attempt.
    """

    def __init__(
        self,
        endpoints: ProviderEndpoints,
        signer: ClientSecretSigner | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
    ) -> None:
        self._endpoints = endpoints
        self._signer = signer or ClientSecretSigner(
            audience=endpoints.issuer,
            algorithm=endpoints.client_secret_algorithm,
        )
        self._http_client = http_client
        self._timeout = timeout

    async def exchange(
        self,
        identity: ClientIdentity,
        code: str,
        redirect_uri: str,
        now: datetime | None = None,
    ) -> TokenResponse:
        """POST the code and a fresh client secret; return the parsed response."""
        form = {
            "client_id": identity.client_id,
            "client_secret": self._signer.sign(identity, now),
            "code": code,
            "grant_type": GRANT_TYPE,
            "redirect_uri": redirect_uri,
        }

        client = self._http_client or httpx.AsyncClient()
        try:
            response = await client.post(
                self._endpoints.token_url, data=form, timeout=self._timeout
            )
        except httpx.HTTPError as exc:
            raise ProtocolError(f"Token request to {self._endpoints.token_url} failed") from exc
        finally:
            if self._http_client is None:
                await client.aclose()

        if response.is_error:
            error, description = _error_from_body(response)
            logger.info(
                "Token exchange rejected",
                extra={"status": response.status_code, "error": error},
            )
            raise ProtocolError(
                f"Token endpoint returned {response.status_code}: {error or 'no error code'}",
                error=error,
                description=description,
            )

        try:
            return TokenResponse.model_validate_json(response.content)
        except ValidationError as exc:
            error, description = _error_from_body(response)
            raise ProtocolError(
                "Token response has no usable id_token",
                error=error,
                description=description,
            ) from exc
