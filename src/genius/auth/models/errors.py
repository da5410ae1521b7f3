"""Exception hierarchy for OAuth 2.0 authentication errors.

Provides specific exception types for different failure modes to enable
precise error handling and recovery strategies.
"""

from __future__ import annotations

from genius.errors import GeniusError


class OAuth2Error(GeniusError):
    """Base exception for all OAuth 2.0 related errors."""

    user_message = "Unexpected error during authentication."


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails.

    The host has no secure random source, so login cannot proceed.
    """

    user_message = "This environment cannot generate secure login parameters."


class SecurityValidationError(OAuth2Error):
    """Raised when the callback state does not match the persisted state.

    Also raised when the persisted PKCE parameters are missing. Fails closed:
    the same attempt is never retried, the user must restart login.
    """

    user_message = "Security validation failed. Please log in again."


class ProviderAuthorizationError(OAuth2Error):
    """Raised when the provider refuses authorization."""

    user_message = "Authentication error. Please try again."

    def __init__(
        self,
        message: str = "",
        *,
        error: str | None = None,
        error_description: str | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message, user_message=user_message)
        self.error = error
        self.error_description = error_description


class AccessDeniedError(ProviderAuthorizationError):
    """Raised when the user denied consent on the provider's dialog."""

    user_message = "Access denied. You need to authorize the application to continue."


class TokenExchangeError(ProviderAuthorizationError):
    """Raised when authorization code to token exchange fails."""

    user_message = "Authentication failed while exchanging the authorization code."


class MissingAuthorizationCodeError(ProviderAuthorizationError):
    """Raised when the callback carries neither a code nor an error."""

    user_message = "Authorization code not found in the provider response."


class SessionPersistenceError(OAuth2Error):
    """Raised when the issued credential cannot be persisted."""

    user_message = "Could not store your session. Please try logging in again."
