"""HTTP adapter for the Drive server: OAuth routes and the dashboard tool bridge."""

from __future__ import annotations

import logging

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route

from conduit.config import Settings
from conduit.dispatch import Dispatcher, Success, ToolResponse
from conduit.errors import ErrorKind
from conduit.oauth import OAuthError
from conduit.session import DriveSession

logger = logging.getLogger("conduit.web")


def response_to_http(response: ToolResponse) -> JSONResponse:
    """Map a tool response onto an HTTP status and JSON body."""
    if isinstance(response, Success):
        return JSONResponse({"content": [{"type": "text", "text": response.text}]})
    status_code = 401 if response.kind is ErrorKind.AUTH_REQUIRED else 500
    return JSONResponse({"error": response.message}, status_code=status_code)


def create_app(session: DriveSession, dispatcher: Dispatcher, settings: Settings) -> Starlette:
    """Build the Starlette application serving the Drive HTTP routes."""

    async def authorize(request: Request) -> Response:
        """GET /auth/google - URL the dashboard opens to start consent."""
        return JSONResponse({"authUrl": session.oauth.authorization_url()})

    async def callback(request: Request) -> Response:
        """GET /auth/google/callback - exchange the code and persist the credential."""
        code = request.query_params.get("code")
        if not code:
            error = request.query_params.get("error")
            logger.warning("OAuth callback without code (error=%s)", error)
            return PlainTextResponse("Missing authorization code.", status_code=400)
        try:
            await session.complete_authorization(code)
        except (OAuthError, httpx.HTTPError, OSError) as exc:
            logger.error("Error during OAuth2 callback: %s", exc)
            return PlainTextResponse("Authentication failed.", status_code=500)
        logger.info("OAuth2 callback complete; redirecting to %s", settings.success_url)
        return RedirectResponse(settings.success_url, status_code=302)

    async def disconnect(request: Request) -> Response:
        """POST /auth/google/disconnect - forget the credential."""
        try:
            removed = session.disconnect()
        except OSError as exc:
            logger.error("Error during disconnect: %s", exc)
            return PlainTextResponse("Disconnection failed.", status_code=500)
        if removed:
            return PlainTextResponse("Disconnected successfully.")
        return PlainTextResponse("Already disconnected (no token file found).")

    async def call_tool(request: Request) -> Response:
        """POST /call_tool - ``{tool, args}`` forwarded to the dispatcher."""
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
        if not isinstance(body, dict) or not isinstance(body.get("tool"), str):
            return JSONResponse(
                {"error": "Request body must be an object with a 'tool' string"},
                status_code=400,
            )
        response = await dispatcher.handle(body["tool"], body.get("args"))
        return response_to_http(response)

    routes = [
        Route("/auth/google", authorize, methods=["GET"]),
        Route("/auth/google/callback", callback, methods=["GET"]),
        Route("/auth/google/disconnect", disconnect, methods=["POST"]),
        Route("/call_tool", call_tool, methods=["POST"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        ),
    ]

    return Starlette(routes=routes, middleware=middleware)


__all__ = ["create_app", "response_to_http"]
