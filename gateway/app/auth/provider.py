"""
Identity provider client.

This module implements the provider side of the OAuth 2.0 authorization
code flow:
- Building the authorization redirect URL
- Exchanging an authorization code for a token credential
- Building the provider logout URL
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import DisplayIdentity, ProviderTokenResponse
from .credentials import (
    CodeRejectedError,
    MalformedCredentialError,
    ProviderUnavailableError,
    parse_display_identity,
)

logger = logging.getLogger(__name__)


AUTHORIZE_ENDPOINT = "/login/oauth/authorize"
TOKEN_ENDPOINT = "/api/login/oauth/access_token"
LOGOUT_ENDPOINT = "/api/logout"


class IdentityProviderClient:
    """
    Talks to the identity provider on behalf of the gateway.

    Args:
        settings: Gateway settings (provider URL, client credentials)
        http_client: Optional shared httpx client. When omitted a short-lived
            client is created for each exchange.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self._provider = settings.provider_url_str
        self._client_id = settings.CLIENT_ID
        self._client_secret = settings.CLIENT_SECRET
        self._app_name = settings.APP_NAME
        self._redirect_uri = settings.redirect_uri
        self._base_url = settings.base_url_str
        self._placeholder = settings.PLACEHOLDER_IDENTITY
        self._timeout = httpx.Timeout(settings.TOKEN_EXCHANGE_TIMEOUT_SECONDS)
        self._http_client = http_client

    # =========================================================================
    # Redirect URLs
    # =========================================================================

    def authorize_url(self) -> str:
        """URL that starts a login at the provider."""
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "scope": "read",
            "state": self._app_name,
        }
        return f"{self._provider}{AUTHORIZE_ENDPOINT}?{urlencode(params)}"

    def logout_url(self) -> str:
        """URL that ends the provider session and returns to the gateway."""
        return f"{self._provider}{LOGOUT_ENDPOINT}?{urlencode({'redirect_uri': self._base_url})}"

    # =========================================================================
    # Token Exchange
    # =========================================================================

    async def exchange(self, code: str) -> DisplayIdentity:
        """
        Exchange an authorization code for the client's display identity.

        Args:
            code: Authorization code from the callback

        Returns:
            DisplayIdentity extracted from the returned credential

        Raises:
            ProviderUnavailableError: Transport failure or timeout
            CodeRejectedError: Non-2xx answer, or an answer without an access_token
            MalformedCredentialError: access_token present but not readable
        """
        payload = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "code": code,
        }
        token_endpoint = f"{self._provider}{TOKEN_ENDPOINT}"

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    token_endpoint, data=payload, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(token_endpoint, data=payload)
        except httpx.TimeoutException as e:
            logger.warning("Token exchange timed out", extra={"endpoint": token_endpoint})
            raise ProviderUnavailableError(f"Token exchange timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange transport error: {e}", extra={"endpoint": token_endpoint})
            raise ProviderUnavailableError(f"Cannot reach identity provider: {e}") from e

        if not response.is_success:
            logger.warning(
                "Token exchange rejected by provider",
                extra={"status_code": response.status_code},
            )
            raise CodeRejectedError(response.status_code)

        # Some providers report OAuth errors with a 200 status
        try:
            body = response.json()
        except ValueError as e:
            logger.warning("Token response is not JSON", extra={"status_code": response.status_code})
            raise CodeRejectedError(response.status_code, "Token response is not JSON") from e

        if not isinstance(body, dict) or body.get("error") or not body.get("access_token"):
            error = body.get("error") if isinstance(body, dict) else None
            logger.warning(
                "Token exchange returned no access_token",
                extra={"status_code": response.status_code, "error": error},
            )
            raise CodeRejectedError(
                response.status_code,
                f"Token response carries no access_token (error: {error or 'none'})",
            )

        try:
            token_data = ProviderTokenResponse.model_validate(body)
        except ValidationError as e:
            raise MalformedCredentialError(f"Token response has no usable access_token: {e}") from e

        identity = parse_display_identity(token_data.access_token, self._placeholder)
        logger.debug("Token exchange succeeded", extra={"identity": identity.name})
        return identity
