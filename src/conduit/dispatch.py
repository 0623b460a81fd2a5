"""Tool dispatch: lookup, auth guard, validation, handler, response envelope."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from conduit.errors import ErrorKind, ToolError
from conduit.telemetry import generate_request_id, set_span_attribute, trace_span
from conduit.tools import CapabilityRegistry
from conduit.validation import validate_arguments

DEFAULT_MAX_RESPONSE_BYTES = 5_000_000


@dataclass(frozen=True)
class ToolCall:
    """A validated invocation as seen by a handler."""

    name: str
    arguments: dict[str, Any]
    request_id: str
    client: Any = None  # downstream handle supplied by the auth guard for gated tools


@dataclass(frozen=True)
class Success:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": "success", "text": self.text}


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": "error", "kind": self.kind.value, "message": self.message}


ToolResponse = Success | Failure
Handler = Callable[[ToolCall], Awaitable[Any]]
Guard = Callable[[], Any]


def render_payload(value: Any) -> str:
    """Plain strings pass through; anything else is pretty-printed JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class Dispatcher:
    """Single point where every tool call is resolved into a ``ToolResponse``.

    Args:
        registry: Tools this server exposes.
        handlers: One coroutine per registered tool name.
        service_label: Used in ``InternalError`` messages ("Git", "Google Drive").
        guard: Called before every tool tagged ``requires_auth``; returns the
            downstream client handle or raises ``ToolError(AuthRequired)``.
        max_response_bytes: Larger success payloads become ``InternalError``.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        handlers: Mapping[str, Handler],
        *,
        service_label: str,
        guard: Guard | None = None,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        logger: logging.Logger | None = None,
    ) -> None:
        missing = [tool.name for tool in registry if tool.name not in handlers]
        if missing:
            raise ValueError(f"No handler registered for: {', '.join(missing)}")
        self.registry = registry
        self._handlers = dict(handlers)
        self._service_label = service_label
        self._guard = guard
        self._max_response_bytes = max_response_bytes
        self._logger = logger or logging.getLogger("conduit.dispatch")

    async def handle(self, name: str, arguments: Mapping[str, Any] | None) -> ToolResponse:
        request_id = generate_request_id()
        with trace_span(
            f"handle_tool/{name}",
            attributes={"conduit.tool": name, "conduit.request_id": request_id},
        ) as span:
            response = await self._dispatch(name, arguments, request_id)
            outcome = "success" if isinstance(response, Success) else response.kind.value
            set_span_attribute(span, "conduit.outcome", outcome)
            return response

    async def _dispatch(
        self, name: str, arguments: Mapping[str, Any] | None, request_id: str
    ) -> ToolResponse:
        tool = self.registry.lookup(name)
        if tool is None:
            self._logger.warning("Unknown tool requested: %s", name)
            return Failure(ErrorKind.METHOD_NOT_FOUND, f"Unknown tool: {name}")

        try:
            client = None
            if tool.requires_auth and self._guard is not None:
                client = self._guard()
            validated = validate_arguments(tool, arguments)
            result = await self._handlers[name](
                ToolCall(name=name, arguments=validated, request_id=request_id, client=client)
            )
        except ToolError as exc:
            self._logger.warning("%s failed with %s: %s", name, exc.kind.value, exc.message)
            return Failure(exc.kind, exc.message)
        except Exception as exc:
            self._logger.error("Unhandled error in %s: %s", name, exc, exc_info=True)
            return Failure(
                ErrorKind.INTERNAL_ERROR, f"{self._service_label} operation failed: {exc}"
            )

        text = render_payload(result)
        size = len(text.encode("utf-8"))
        if size > self._max_response_bytes:
            self._logger.warning(
                "Response payload exceeded limit for %s: %d bytes (max %d)",
                name,
                size,
                self._max_response_bytes,
            )
            return Failure(
                ErrorKind.INTERNAL_ERROR,
                f"Response payload too large: {size} bytes (max {self._max_response_bytes})",
            )
        self._logger.debug("%s completed (request %s)", name, request_id)
        return Success(text)


__all__ = [
    "Dispatcher",
    "Failure",
    "Handler",
    "Success",
    "ToolCall",
    "ToolResponse",
    "render_payload",
]
