"""MCP tool servers for git and Google Drive."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

import httpx
import uvicorn
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, TextContent, Tool

from conduit.config import Settings, configure_logging, load_settings, warn_if_unconfigured
from conduit.credentials import CredentialStore
from conduit.dispatch import Dispatcher, Failure
from conduit.drive_handlers import build_drive_handlers
from conduit.git_handlers import build_git_handlers
from conduit.oauth import OAuthClient
from conduit.session import DriveSession
from conduit.tools import DRIVE_TOOLS, GIT_TOOLS, CapabilityRegistry, build_tools
from conduit.web import create_app

logger = logging.getLogger("conduit")

GIT_SERVER_NAME = "conduit-git"
DRIVE_SERVER_NAME = "conduit-drive"


def build_git_dispatcher(settings: Settings) -> Dispatcher:
    return Dispatcher(
        CapabilityRegistry(GIT_TOOLS),
        build_git_handlers(),
        service_label="Git",
        max_response_bytes=settings.max_response_bytes,
        logger=logging.getLogger("conduit.git"),
    )


def build_drive_session(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> DriveSession:
    oauth = OAuthClient(
        settings.client_id,
        settings.client_secret,
        settings.redirect_uri,
        settings.scopes,
        transport=transport,
    )
    return DriveSession(CredentialStore(settings.token_path), oauth)


def build_drive_dispatcher(settings: Settings, session: DriveSession) -> Dispatcher:
    return Dispatcher(
        CapabilityRegistry(DRIVE_TOOLS),
        build_drive_handlers(session),
        service_label="Google Drive",
        guard=session.ensure_ready,
        max_response_bytes=settings.max_response_bytes,
        logger=logging.getLogger("conduit.drive"),
    )


async def call_tool(dispatcher: Dispatcher, name: str, arguments: Any) -> list[TextContent]:
    """Run a tool call and render it for the protocol.

    Separated from the request handler so tests can invoke it without a
    protocol session. Failures are raised as ``McpError`` so the client sees a
    typed JSON-RPC error rather than a text result.
    """
    response = await dispatcher.handle(name, arguments)
    if isinstance(response, Failure):
        raise McpError(ErrorData(code=response.kind.code, message=response.message))
    return [TextContent(type="text", text=response.text)]


def create_protocol_server(name: str, dispatcher: Dispatcher) -> Server:
    """Bind the registry listing and the dispatcher to a protocol server."""
    server: Server = Server(name)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return build_tools(dispatcher.registry)

    # Set directly: an McpError raised here becomes a JSON-RPC error response.
    async def handle_call_tool(request: types.CallToolRequest) -> types.ServerResult:
        content = await call_tool(dispatcher, request.params.name, request.params.arguments)
        return types.ServerResult(types.CallToolResult(content=content, isError=False))

    server.request_handlers[types.CallToolRequest] = handle_call_tool
    return server


async def run_stdio(server: Server) -> None:
    """Run the protocol server over stdio until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def _cancel_on_sigterm(task: asyncio.Task[Any]) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGTERM handler unavailable on this platform")


async def run_git(settings: Settings) -> None:
    protocol = create_protocol_server(GIT_SERVER_NAME, build_git_dispatcher(settings))
    task = asyncio.current_task()
    if task is not None:
        _cancel_on_sigterm(task)
    logger.info("Git MCP server running on stdio")
    await run_stdio(protocol)


async def run_drive(settings: Settings) -> None:
    """Serve the protocol on stdio and the OAuth/bridge routes over HTTP.

    Whichever side stops first (client disconnect, termination signal, bind
    failure) takes the other one down with it.
    """
    session = build_drive_session(settings)
    session.restore()
    dispatcher = build_drive_dispatcher(settings, session)
    protocol = create_protocol_server(DRIVE_SERVER_NAME, dispatcher)
    http_server = uvicorn.Server(
        uvicorn.Config(
            create_app(session, dispatcher, settings),
            host=settings.http_host,
            port=settings.http_port,
            log_config=None,
            access_log=False,
        )
    )
    current = asyncio.current_task()
    if current is not None:
        _cancel_on_sigterm(current)

    stdio_task = asyncio.create_task(run_stdio(protocol), name="stdio")
    http_task = asyncio.create_task(http_server.serve(), name="http")
    logger.info(
        "Google Drive MCP server running on stdio; OAuth server on http://%s:%d",
        settings.http_host,
        settings.http_port,
    )
    try:
        done, _pending = await asyncio.wait(
            {stdio_task, http_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        http_server.should_exit = True
        for task in (stdio_task, http_task):
            task.cancel()
        await asyncio.gather(stdio_task, http_task, return_exceptions=True)
    for task in done:
        if not task.cancelled():
            task.result()


def _main(runner: Any, label: str, settings: Settings) -> None:
    try:
        asyncio.run(runner(settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down %s", label)
    except Exception as exc:
        logger.error("%s failed: %s", label, exc)
        print(f"Failed to start server: {exc}", file=sys.stderr)
        sys.exit(1)


def main_git() -> None:
    """CLI entry point for the git tool server."""
    settings = load_settings()
    configure_logging(settings.log_level)
    _main(run_git, "Git MCP server", settings)


def main_drive() -> None:
    """CLI entry point for the Google Drive tool server."""
    settings = load_settings()
    configure_logging(settings.log_level)
    warn_if_unconfigured(settings)
    _main(run_drive, "Google Drive MCP server", settings)


if __name__ == "__main__":
    main_git()
