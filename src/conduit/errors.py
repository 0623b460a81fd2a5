"""Closed error taxonomy shared by every tool server."""

from __future__ import annotations

from enum import Enum

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

# JSON-RPC reserves -32000..-32099 for server-defined errors.
AUTH_REQUIRED = -32001


class ErrorKind(str, Enum):
    """Failure kinds a tool invocation can surface."""

    INVALID_PARAMS = "InvalidParams"
    AUTH_REQUIRED = "AuthRequired"
    METHOD_NOT_FOUND = "MethodNotFound"
    INTERNAL_ERROR = "InternalError"

    @property
    def code(self) -> int:
        return _CODES[self]


_CODES = {
    ErrorKind.INVALID_PARAMS: INVALID_PARAMS,
    ErrorKind.AUTH_REQUIRED: AUTH_REQUIRED,
    ErrorKind.METHOD_NOT_FOUND: METHOD_NOT_FOUND,
    ErrorKind.INTERNAL_ERROR: INTERNAL_ERROR,
}


class ToolError(Exception):
    """A failure that already carries its kind.

    The dispatcher passes these through unchanged; anything else raised by a
    handler is demoted to ``InternalError``.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ToolError({self.kind.value}, {self.message!r})"


def invalid_params(message: str) -> ToolError:
    return ToolError(ErrorKind.INVALID_PARAMS, message)


__all__ = ["AUTH_REQUIRED", "ErrorKind", "ToolError", "invalid_params"]
