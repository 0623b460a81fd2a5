"""Credential lifecycle and the auth guard for the Drive tool server."""

from __future__ import annotations

import logging
from enum import Enum

from conduit.credentials import Credential, CredentialStore
from conduit.drive import DriveClient
from conduit.errors import ErrorKind, ToolError
from conduit.oauth import OAuthClient

logger = logging.getLogger("conduit.session")

AUTH_REQUIRED_MESSAGE = "Google Drive not authenticated. Please run drive_authenticate first."


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    HANDLE_STALE = "handle_stale"
    READY = "ready"


class DriveSession:
    """Context threaded through the Drive dispatcher and its handlers.

    The credential itself lives in the ``CredentialStore``; the session only
    reads it. The Drive client handle is rebuilt whenever the credential is
    replaced or cleared. Token expiry is never inspected here: a stale token
    shows up as a failing Drive call.
    """

    def __init__(self, store: CredentialStore, oauth: OAuthClient) -> None:
        self.store = store
        self.oauth = oauth
        self._client: DriveClient | None = None
        oauth.on_tokens(self._handle_refresh)

    @property
    def credential(self) -> Credential | None:
        return self.store.current

    @property
    def authenticated(self) -> bool:
        credential = self.store.current
        return credential is not None and credential.active

    @property
    def state(self) -> AuthState:
        if not self.authenticated:
            return AuthState.UNAUTHENTICATED
        if self._client is None:
            return AuthState.HANDLE_STALE
        return AuthState.READY

    def restore(self) -> bool:
        """Load a persisted credential at startup; the handle is built lazily."""
        credential = self.store.load()
        self.oauth.set_credentials(credential)
        self._client = None
        if credential is None:
            logger.info("No stored Google Drive credential; authorization required")
            return False
        logger.info("Loaded stored Google Drive credential from %s", self.store.path)
        return True

    def ensure_ready(self) -> DriveClient:
        """Return a client bound to the current credential.

        Raises:
            ToolError: ``AuthRequired`` when there is no active credential.
        """
        if self.state is AuthState.UNAUTHENTICATED:
            raise ToolError(ErrorKind.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)
        client = self._client
        if client is None:
            self.oauth.set_credentials(self.store.current)
            client = self._client = DriveClient(self.oauth)
            logger.debug("Google Drive client initialized")
        return client

    async def complete_authorization(self, code: str) -> Credential:
        """Exchange ``code``, persist the credential and mark the handle stale.

        Raises:
            OAuthError: If the token exchange fails.
            OSError: If the credential cannot be written.
        """
        credential = await self.oauth.exchange_code(code)
        self.store.save(credential)
        self.oauth.set_credentials(credential)
        self._client = None
        logger.info("Google Drive credential saved to %s", self.store.path)
        return credential

    def disconnect(self) -> bool:
        """Forget the credential and delete its file.

        Returns:
            True if a token file was removed, False if there was none.

        Raises:
            OSError: If the token file exists but cannot be removed.
        """
        self._client = None
        self.oauth.set_credentials(None)
        removed = self.store.clear()
        logger.info("Google Drive credential cleared (file removed: %s)", removed)
        return removed

    def _handle_refresh(
        self, access_token: str, refresh_token: str | None, expiry_date: int | None
    ) -> None:
        current = self.store.current
        if current is None:
            # Disconnected while a refresh was in flight; do not resurrect it.
            logger.debug("Ignoring token refresh without a stored credential")
            return
        self.store.on_refresh(current, access_token, refresh_token, expiry_date)


__all__ = ["AUTH_REQUIRED_MESSAGE", "AuthState", "DriveSession"]
