import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from conduit.config import Settings, load_settings
from conduit.credentials import Credential, CredentialStore
from conduit.oauth import OAuthClient
from conduit.session import DriveSession

Route = Callable[[httpx.Request], httpx.Response]


def _base(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


class FakeGoogle:
    """Routes httpx requests to canned Google responses and records them."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, route: Route | dict[str, Any], status: int = 200) -> None:
        if isinstance(route, dict):
            payload = route
            route = lambda _request: httpx.Response(status, json=payload)  # noqa: E731
        key = (method, url.split("?", 1)[0])
        self.routes[key] = route

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, _base(request))
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"error": {"message": f"no route for {key}"}})
        return route(request)

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and _base(request) == url
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def token_path(tmp_path: Path) -> Path:
    return tmp_path / "token.json"


@pytest.fixture
def settings(token_path: Path) -> Settings:
    return load_settings(
        {
            "GOOGLE_CLIENT_ID": "client-id",
            "GOOGLE_CLIENT_SECRET": "client-secret",
            "GOOGLE_TOKEN_PATH": str(token_path),
        }
    )


@pytest.fixture
def oauth(google: FakeGoogle, settings: Settings) -> OAuthClient:
    return OAuthClient(
        settings.client_id,
        settings.client_secret,
        settings.redirect_uri,
        settings.scopes,
        transport=google.transport,
    )


@pytest.fixture
def store(token_path: Path) -> CredentialStore:
    return CredentialStore(token_path)


@pytest.fixture
def session(store: CredentialStore, oauth: OAuthClient) -> DriveSession:
    return DriveSession(store, oauth)


@pytest.fixture
def write_token(token_path: Path) -> Callable[..., Credential]:
    def _write(**fields: Any) -> Credential:
        data = {"access_token": "access-1", "refresh_token": "refresh-1", **fields}
        token_path.write_text(json.dumps(data))
        return Credential.from_dict(data)

    return _write

