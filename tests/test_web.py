"""Tests for the HTTP adapter routes."""

import json
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
from starlette.testclient import TestClient

from conduit.config import Settings
from conduit.dispatch import Failure, Success
from conduit.errors import ErrorKind
from conduit.oauth import TOKEN_URL
from conduit.server import build_drive_dispatcher
from conduit.session import AUTH_REQUIRED_MESSAGE, DriveSession
from conduit.tools import DRIVE_TOOLS
from conduit.web import create_app, response_to_http


@pytest.fixture
def client(settings: Settings, session: DriveSession) -> TestClient:
    app = create_app(session, build_drive_dispatcher(settings, session), settings)
    return TestClient(app)


def _call(client: TestClient, tool: str, args: dict[str, Any] | None = None):
    return client.post("/call_tool", json={"tool": tool, "args": args or {}})


class TestAuthRoutes:
    def test_authorize_returns_consent_url(self, client: TestClient) -> None:
        response = client.get("/auth/google")

        assert response.status_code == 200
        url = urlparse(response.json()["authUrl"])
        params = parse_qs(url.query)
        assert params["access_type"] == ["offline"]
        assert params["redirect_uri"] == ["http://localhost:3002/auth/google/callback"]

    def test_callback_persists_credential_and_redirects(
        self, client: TestClient, google: Any, token_path: Path
    ) -> None:
        google.add("POST", TOKEN_URL, {"access_token": "a1", "refresh_token": "r1"})

        response = client.get("/auth/google/callback?code=abc", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "http://localhost:3000/home?auth_success=true"
        assert json.loads(token_path.read_text())["access_token"] == "a1"
        status = _call(client, "drive_is_authenticated")
        assert json.loads(status.json()["content"][0]["text"]) == {"authenticated": True}

    def test_callback_without_code(self, client: TestClient, google: Any) -> None:
        response = client.get("/auth/google/callback?error=access_denied")

        assert response.status_code == 400
        assert response.text == "Missing authorization code."
        assert google.requests == []

    def test_callback_exchange_failure(
        self, client: TestClient, google: Any, token_path: Path
    ) -> None:
        google.add("POST", TOKEN_URL, {"error": "invalid_grant"}, status=400)

        response = client.get("/auth/google/callback?code=stale", follow_redirects=False)

        assert response.status_code == 500
        assert response.text == "Authentication failed."
        assert not token_path.exists()

    def test_disconnect_twice(self, client: TestClient, write_token: Any, session: DriveSession):
        write_token()
        session.restore()

        first = client.post("/auth/google/disconnect")
        second = client.post("/auth/google/disconnect")

        assert (first.status_code, first.text) == (200, "Disconnected successfully.")
        assert (second.status_code, second.text) == (
            200,
            "Already disconnected (no token file found).",
        )
        assert session.authenticated is False

    def test_disconnect_failure(
        self, client: TestClient, session: DriveSession, mocker: Any
    ) -> None:
        mocker.patch.object(session.store, "clear", side_effect=PermissionError("read-only"))

        response = client.post("/auth/google/disconnect")

        assert response.status_code == 500
        assert response.text == "Disconnection failed."

    def test_cors_allows_dashboard_origin(self, client: TestClient) -> None:
        response = client.get("/auth/google", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestCallToolBridge:
    @pytest.mark.parametrize(
        "tool_name", [tool.name for tool in DRIVE_TOOLS if tool.requires_auth]
    )
    def test_gated_tool_without_credential_is_401(
        self, client: TestClient, google: Any, tool_name: str
    ) -> None:
        response = _call(client, tool_name, {"fileId": "abc"})

        assert response.status_code == 401
        assert response.json() == {"error": AUTH_REQUIRED_MESSAGE}
        assert google.requests == []

    def test_unknown_tool_is_500(self, client: TestClient) -> None:
        response = _call(client, "drive_teleport")

        assert response.status_code == 500
        assert response.json() == {"error": "Unknown tool: drive_teleport"}

    def test_invalid_params_is_500(self, client: TestClient, write_token: Any, session):
        write_token()
        session.restore()

        response = _call(client, "drive_get_file")

        assert response.status_code == 500
        assert response.json() == {"error": "fileId is required"}

    def test_success_wraps_text_content(self, client: TestClient) -> None:
        response = client.post("/call_tool", json={"tool": "drive_is_authenticated"})

        assert response.status_code == 200
        content = response.json()["content"]
        assert content[0]["type"] == "text"
        assert json.loads(content[0]["text"]) == {"authenticated": False}

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b'{"args": {}}'])
    def test_malformed_body_is_400(self, client: TestClient, body: bytes) -> None:
        response = client.post(
            "/call_tool", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert "error" in response.json()


def test_response_to_http_statuses() -> None:
    assert response_to_http(Success("ok")).status_code == 200
    assert response_to_http(Failure(ErrorKind.AUTH_REQUIRED, "m")).status_code == 401
    for kind in (ErrorKind.INVALID_PARAMS, ErrorKind.METHOD_NOT_FOUND, ErrorKind.INTERNAL_ERROR):
        assert response_to_http(Failure(kind, "m")).status_code == 500
