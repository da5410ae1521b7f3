"""Token endpoint client for the authorization code exchange.

Implements RFC 6749 Section 4.1.3 with the PKCE ``code_verifier``
(RFC 7636). Uses application/x-www-form-urlencoded bodies as the token
endpoint requires.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from genius.auth.models.errors import TokenExchangeError
from genius.auth.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)


class SpotifyTokenClient:
    """Exchanges authorization codes for access tokens."""

    def __init__(
        self,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the token client.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Client to reuse; one is created when omitted
        """
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for an access token.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Successful token response

        Raises:
            TokenExchangeError: On transport failure, a non-2xx status, or a
                malformed body. The provider's ``error_description`` is kept.
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(
                f"HTTP error during token exchange: {e}",
                user_message=f"Authentication failed: {e}",
            ) from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a token endpoint response.

        Raises:
            TokenExchangeError: If the response is an error or malformed
        """
        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(
                f"Invalid token response format ({response.status_code}): {e}",
                user_message="Authentication failed: invalid response from Spotify.",
            ) from e

        if response.is_success and token_response.is_success():
            logger.info("Token exchange successful")
            return token_response

        error_code = token_response.error or "invalid_response"
        description = token_response.error_description or error_code
        if response.is_success:
            description = "Token response missing required access_token"

        logger.warning(
            f"Token exchange failed with {response.status_code}: "
            f"{error_code} - {description}"
        )
        raise TokenExchangeError(
            f"Token exchange failed: {description}",
            error=error_code,
            error_description=token_response.error_description,
            user_message=f"Authentication failed: {description}",
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
