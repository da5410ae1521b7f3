"""Credential and PKCE parameter stores.

These are the only places that touch persisted authentication state. The
credential store keeps the session credential in a durable area; the PKCE
store keeps the verifier/state pair in a session-scoped area for the length
of one authorization round trip.
"""

from __future__ import annotations

import enum
import json
import logging
import time
from typing import Callable

from genius.auth.models.tokens import SessionCredential
from genius.errors import StorageUnavailableError
from genius.storage import StorageArea, StorageEvent, Unsubscribe

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "spotify_credential"

# Written by the implicit-grant login that predates the PKCE flow
LEGACY_TOKEN_KEY = "spotify_token"
LEGACY_EXPIRES_KEY = "spotify_token_expires"
LEGACY_REFRESH_KEY = "spotify_refresh_token"

CREDENTIAL_KEYS = (
    CREDENTIAL_KEY,
    LEGACY_TOKEN_KEY,
    LEGACY_EXPIRES_KEY,
    LEGACY_REFRESH_KEY,
)

VERIFIER_KEY = "spotify_code_verifier"
STATE_KEY = "spotify_state"


class AuthState(enum.Enum):
    """Authentication state derived from the stored credential."""

    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class CredentialStore:
    """Durable store for the session credential.

    Mutations are whole-record replacements, so a reader never sees a
    half-written credential. If the storage area is unavailable the store
    behaves as if nobody is logged in.
    """

    def __init__(
        self,
        storage: StorageArea,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the credential store.

        Args:
            storage: Durable storage area to persist into
            clock: Returns the current Unix time in seconds
        """
        self._storage = storage
        self._clock = clock
        self._state = AuthState.UNKNOWN

    @property
    def state(self) -> AuthState:
        """Last evaluated authentication state."""
        return self._state

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def load(self) -> SessionCredential | None:
        """Load the stored credential.

        Missing, unreadable or expired credentials are reported as absent.
        Expired data is purged so later loads are absent without a second
        expiry check.
        """
        try:
            credential = self._read()
        except StorageUnavailableError as e:
            logger.warning(f"Credential storage unavailable: {e}")
            self._state = AuthState.UNAUTHENTICATED
            return None

        if credential is not None and credential.is_expired(self._now_ms()):
            logger.info("Stored access token has expired, purging it")
            self.clear()
            credential = None

        self._state = (
            AuthState.AUTHENTICATED if credential else AuthState.UNAUTHENTICATED
        )
        return credential

    def save(
        self,
        access_token: str,
        expires_in: float | None = None,
        refresh_token: str | None = None,
    ) -> SessionCredential | None:
        """Persist a new credential, replacing any previous one.

        Args:
            access_token: Bearer token for API calls
            expires_in: Token lifetime in seconds, if the provider gave one
            refresh_token: Optional refresh token

        Returns:
            The credential that was stored, or None if storage is unavailable
        """
        expires_at_ms = None
        if expires_in is not None:
            expires_at_ms = self._now_ms() + int(expires_in * 1000)

        credential = SessionCredential(
            access_token=access_token,
            expires_at_ms=expires_at_ms,
            refresh_token=refresh_token,
        )
        try:
            self._storage.set_item(CREDENTIAL_KEY, json.dumps(credential.to_dict()))
            for key in CREDENTIAL_KEYS[1:]:
                self._storage.remove_item(key)
        except StorageUnavailableError as e:
            logger.error(f"Could not persist credential: {e}")
            self._state = AuthState.UNAUTHENTICATED
            return None

        self._state = AuthState.AUTHENTICATED
        logger.info("Stored new session credential")
        return credential

    def clear(self) -> bool:
        """Remove every persisted credential field.

        Returns:
            True if a credential was present and has been removed
        """
        removed = False
        try:
            for key in CREDENTIAL_KEYS:
                if self._storage.get_item(key) is not None:
                    self._storage.remove_item(key)
                    removed = True
        except StorageUnavailableError as e:
            logger.error(f"Could not clear credential: {e}")
        self._state = AuthState.UNAUTHENTICATED
        if removed:
            logger.info("Cleared session credential")
        return removed

    def auth_state(self) -> AuthState:
        """Re-evaluate and return the authentication state."""
        self.load()
        return self._state

    def on_external_change(
        self, callback: Callable[[AuthState], None]
    ) -> Unsubscribe:
        """Subscribe to credential changes made by another context.

        Another context logging in or out triggers a re-evaluation, and the
        callback receives the new state.

        Returns:
            Callable that ends the subscription
        """

        def handle(event: StorageEvent) -> None:
            if event.key not in CREDENTIAL_KEYS:
                return
            callback(self.auth_state())

        return self._storage.subscribe(handle)

    def _read(self) -> SessionCredential | None:
        raw = self._storage.get_item(CREDENTIAL_KEY)
        if raw is not None:
            try:
                return SessionCredential.from_dict(json.loads(raw))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Discarding malformed stored credential: {e}")
                self._storage.remove_item(CREDENTIAL_KEY)
                return None
        return self._read_legacy()

    def _read_legacy(self) -> SessionCredential | None:
        """Synthesize a credential from a token left by the implicit-grant login."""
        token = self._storage.get_item(LEGACY_TOKEN_KEY)
        if not token:
            return None

        expires = self._storage.get_item(LEGACY_EXPIRES_KEY)
        try:
            expires_at_ms = int(expires) if expires else None
        except ValueError:
            expires_at_ms = None
        credential = SessionCredential(
            access_token=token,
            expires_at_ms=expires_at_ms,
            refresh_token=self._storage.get_item(LEGACY_REFRESH_KEY),
        )

        if not credential.is_expired(self._now_ms()):
            logger.info("Migrating legacy access token to the credential record")
            self._storage.set_item(CREDENTIAL_KEY, json.dumps(credential.to_dict()))
            for key in CREDENTIAL_KEYS[1:]:
                self._storage.remove_item(key)
        return credential


class PKCEStore:
    """Session-scoped store for the verifier/state pair of one login attempt."""

    def __init__(self, storage: StorageArea):
        self._storage = storage

    def save(self, verifier: str, state: str) -> None:
        """Persist parameters, overwriting those of any earlier attempt."""
        self._storage.set_item(VERIFIER_KEY, verifier)
        self._storage.set_item(STATE_KEY, state)

    def load(self) -> tuple[str | None, str | None]:
        """Return ``(verifier, state)``; either may be missing."""
        try:
            return (
                self._storage.get_item(VERIFIER_KEY),
                self._storage.get_item(STATE_KEY),
            )
        except StorageUnavailableError as e:
            logger.warning(f"PKCE storage unavailable: {e}")
            return None, None

    def clear(self) -> None:
        try:
            self._storage.remove_item(VERIFIER_KEY)
            self._storage.remove_item(STATE_KEY)
        except StorageUnavailableError as e:
            logger.error(f"Could not clear PKCE parameters: {e}")
