"""Authorization code + PKCE handshake orchestration.

Drives a login from the redirect to the provider through callback handling
and token exchange, and records the result in the credential store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from genius.auth.models.errors import (
    AccessDeniedError,
    MissingAuthorizationCodeError,
    OAuth2Error,
    ProviderAuthorizationError,
    SecurityValidationError,
    SessionPersistenceError,
)
from genius.auth.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    HandshakeResult,
    HandshakeState,
)
from genius.auth.models.tokens import TokenRequest
from genius.auth.primitives.pkce import generate_pkce_parameters
from genius.auth.services.credentials import CredentialStore, PKCEStore
from genius.auth.services.security import validate_state
from genius.auth.services.tokens import SpotifyTokenClient

logger = logging.getLogger(__name__)

LOGIN_ENTRY_POINT = "/"


class Navigator(Protocol):
    """Sends the user agent to a URL (the provider's authorization page)."""

    def navigate(self, url: str) -> None: ...


class AuthorizationFlow:
    """Orchestrates the authorization code flow with PKCE.

    State machine:
        IDLE -> REDIRECTING -> AWAITING_CALLBACK -> EXCHANGING_CODE
             -> AUTHENTICATED | FAILED

    The ``state`` check is the only CSRF defense and always runs before the
    code is trusted. PKCE parameters live for exactly one round trip.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        authorization_endpoint: str,
        token_endpoint: str,
        credentials: CredentialStore,
        pkce_store: PKCEStore,
        token_client: SpotifyTokenClient,
        scopes: Sequence[str] = (),
        navigator: Navigator | None = None,
    ):
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.authorization_endpoint = authorization_endpoint
        self.token_endpoint = token_endpoint
        self.scopes = tuple(scopes)
        self.credentials = credentials
        self.pkce_store = pkce_store
        self.token_client = token_client
        self.navigator = navigator
        self.state = HandshakeState.IDLE

    def begin_login(self, scopes: Sequence[str] | None = None) -> str:
        """Start a login attempt and send the user to the provider.

        Fresh PKCE parameters are generated every time, overwriting those of
        any earlier attempt, so a stale callback fails its state check.

        Args:
            scopes: Scopes to request; defaults to the configured scopes

        Returns:
            The authorization URL

        Raises:
            PKCEError: If secure parameters cannot be generated
        """
        self.state = HandshakeState.REDIRECTING
        params = generate_pkce_parameters()
        self.pkce_store.save(params.verifier, params.state)

        auth_request = AuthorizationRequest(
            authorization_endpoint=self.authorization_endpoint,
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            code_challenge=params.challenge,
            code_challenge_method=params.challenge_method,
            state=params.state,
            scopes=tuple(scopes) if scopes is not None else self.scopes,
        )
        authorization_url = auth_request.build_authorization_url()
        logger.info(f"Starting authorization flow for client {self.client_id}")

        if self.navigator is not None:
            self.navigator.navigate(authorization_url)
        self.state = HandshakeState.AWAITING_CALLBACK
        return authorization_url

    async def handle_callback(
        self, query: Mapping[str, str] | str
    ) -> HandshakeResult:
        """Process the provider's redirect back to the application.

        Never raises for authorization failures: every failure ends in
        ``FAILED`` with a message for the user. PKCE parameters are purged
        whatever the outcome.

        Args:
            query: Callback query parameters, query string, or full URL
        """
        try:
            response = AuthorizationResponse.from_query(query)
            message = await self._process_callback(response)
        except OAuth2Error as e:
            self.state = HandshakeState.FAILED
            logger.warning(f"Authorization failed: {e}")
            return HandshakeResult(self.state, e.user_message, e)
        finally:
            self.pkce_store.clear()

        self.state = HandshakeState.AUTHENTICATED
        return HandshakeResult(self.state, message)

    def retry(self) -> str:
        """Discard any credential and return the login entry point."""
        self.credentials.clear()
        self.pkce_store.clear()
        self.state = HandshakeState.IDLE
        return LOGIN_ENTRY_POINT

    async def _process_callback(self, response: AuthorizationResponse) -> str:
        if response.is_error():
            logger.warning(
                f"Authorization callback contained error: {response.error} - "
                f"{response.error_description}"
            )
            error_class = (
                AccessDeniedError
                if response.error == "access_denied"
                else ProviderAuthorizationError
            )
            raise error_class(
                f"Authorization failed: {response.error}",
                error=response.error,
                error_description=response.error_description,
            )

        if self.credentials.load() is not None:
            logger.info("Valid credential already stored, skipping code exchange")
            return "Already authenticated."

        if response.code is None:
            raise MissingAuthorizationCodeError("Callback missing authorization code")

        verifier, expected_state = self.pkce_store.load()
        validate_state(expected_state, response.state)
        if not verifier:
            raise SecurityValidationError(
                "No persisted code verifier for this callback",
                user_message=(
                    "Authentication parameters not found. Please log in again."
                ),
            )

        self.state = HandshakeState.EXCHANGING_CODE
        token_response = await self.token_client.exchange_code_for_token(
            TokenRequest(
                token_endpoint=self.token_endpoint,
                code=response.code,
                redirect_uri=self.redirect_uri,
                client_id=self.client_id,
                code_verifier=verifier,
            )
        )

        stored = self.credentials.save(
            token_response.access_token,
            expires_in=token_response.expires_in,
            refresh_token=token_response.refresh_token,
        )
        if stored is None:
            raise SessionPersistenceError("Credential storage rejected the new token")
        logger.info("Authorization code exchanged, session authenticated")
        return "Authentication successful."
