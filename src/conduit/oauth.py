"""Google OAuth2 authorization-code client."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any
from urllib.parse import urlencode

import httpx

from conduit.credentials import Credential

logger = logging.getLogger("conduit.oauth")

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105
REQUEST_TIMEOUT = 30.0

# (access_token, refresh_token or None, expiry_date or None)
TokenListener = Callable[[str, str | None, int | None], None]


class OAuthError(RuntimeError):
    """Token endpoint rejected a request or returned an unusable payload."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def _token_fields(data: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(data.get("access_token"), str) or not data["access_token"]:
        raise OAuthError(f"Token response missing access_token: {sorted(data)}")
    fields = dict(data)
    expires_in = fields.pop("expires_in", None)
    if isinstance(expires_in, (int, float)):
        fields["expiry_date"] = _now_ms() + int(expires_in * 1000)
    return fields


class OAuthClient:
    """Holds the active credential and keeps it fresh.

    Exactly one token listener may be registered; it is told about every
    refresh so the new tokens can be persisted.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: Sequence[str],
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = tuple(scopes)
        self.credentials: Credential | None = None
        self._transport = transport
        self._timeout = timeout
        self._listener: TokenListener | None = None

    def on_tokens(self, listener: TokenListener | None) -> None:
        """Register the refresh listener, replacing any previous one."""
        self._listener = listener

    def set_credentials(self, credential: Credential | None) -> None:
        self.credentials = credential

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def authorization_url(self, *, state: str | None = None) -> str:
        """Build the consent URL; offline access so a refresh token is issued."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def _post_token(self, form: dict[str, str]) -> dict[str, Any]:
        async with self.http_client() as client:
            response = await client.post(TOKEN_URL, data=form)
        if response.status_code != 200:
            logger.error("Token endpoint returned %d", response.status_code)
            detail = ""
            try:
                body = response.json()
                detail = body.get("error_description") or body.get("error") or ""
            except ValueError:
                pass
            raise OAuthError(
                f"Token request failed: {response.status_code}" + (f" {detail}" if detail else "")
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise OAuthError("Token response is not JSON") from exc
        if not isinstance(data, dict):
            raise OAuthError("Token response is not an object")
        return data

    async def exchange_code(self, code: str) -> Credential:
        """Trade an authorization code for a credential.

        Raises:
            OAuthError: If the exchange fails.
        """
        if not self.client_id or not self.client_secret:
            raise OAuthError("OAuth client is not configured (GOOGLE_CLIENT_ID/SECRET unset)")
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            }
        )
        return Credential.from_dict(_token_fields(data))

    async def refresh(self) -> Credential:
        """Refresh the access token and notify the listener.

        Raises:
            OAuthError: If there is no refresh token or the endpoint rejects it.
        """
        current = self.credentials
        if current is None or not current.refresh_token:
            raise OAuthError("No refresh token is set.")
        data = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        fields = _token_fields(data)
        new_refresh = fields.get("refresh_token") or None
        expiry_date = fields.get("expiry_date")
        updated = replace(
            current,
            access_token=fields["access_token"],
            refresh_token=new_refresh or current.refresh_token,
            expiry_date=expiry_date if expiry_date is not None else current.expiry_date,
        )
        self.credentials = updated
        logger.info("Access token refreshed")
        if self._listener is not None:
            self._listener(updated.access_token, new_refresh, expiry_date)
        return updated

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authorized request.

        An access token past its issued expiry is refreshed first. A 401 with
        a refresh token on hand refreshes the credential for the next call;
        the rejected response is still returned to the caller.

        Raises:
            OAuthError: If no credential is set or a refresh fails.
        """
        credential = self.credentials
        if credential is None or not credential.access_token:
            raise OAuthError("No access token is set.")
        if (
            credential.refresh_token
            and credential.expiry_date is not None
            and credential.expiry_date <= _now_ms()
        ):
            credential = await self.refresh()

        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {credential.access_token}"
        async with self.http_client() as client:
            response = await client.request(method, url, headers=headers, **kwargs)

        if response.status_code == 401 and credential.refresh_token:
            logger.info("Access token rejected; refreshing credential")
            await self.refresh()
        return response


__all__ = ["AUTHORIZE_URL", "TOKEN_URL", "OAuthClient", "OAuthError", "TokenListener"]
