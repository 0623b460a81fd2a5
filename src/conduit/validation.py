"""Validate raw argument bags against a tool's parameter descriptors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from conduit.errors import invalid_params
from conduit.tools import ParameterDef, ToolDef

_TYPE_LABELS = {
    "string": "a string",
    "url": "a URL string",
    "integer": "an integer",
    "number": "a number",
    "boolean": "a boolean",
    "array": "an array",
}


def _is_type(value: Any, type_name: str) -> bool:
    # bool is an int subclass; keep true/false out of numeric parameters.
    if type_name in ("string", "url"):
        return isinstance(value, str)
    if type_name == "integer":
        if isinstance(value, float) and value.is_integer():
            return True
        return isinstance(value, int) and not isinstance(value, bool)
    if type_name == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "boolean":
        return isinstance(value, bool)
    if type_name == "array":
        return isinstance(value, list)
    return False


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    if not parsed.scheme:
        return False
    if parsed.scheme == "file":
        return bool(parsed.path)
    return bool(parsed.netloc)


def _check_value(name: str, value: Any, param: ParameterDef) -> Any:
    if not _is_type(value, param.type):
        raise invalid_params(f"{name} must be {_TYPE_LABELS[param.type]}")

    if param.type == "integer":
        value = int(value)

    if param.type == "array":
        item_type = param.items or "string"
        for index, item in enumerate(value):
            if not _is_type(item, item_type):
                raise invalid_params(f"{name}[{index}] must be {_TYPE_LABELS[item_type]}")
        if param.non_empty and not value:
            raise invalid_params(f"{name} must contain at least one item")
        return list(value)

    if param.type in ("string", "url"):
        if param.non_empty and not value:
            raise invalid_params(f"{name} is required")
        if param.type == "url" and not _is_absolute_url(value):
            raise invalid_params(f"{name} must be a valid absolute URL: {value}")
        if param.no_option and value.startswith("-"):
            raise invalid_params(f"{name} must not start with '-': {value}")

    if param.enum is not None and value not in param.enum:
        raise invalid_params(f"{name} must be one of: {', '.join(param.enum)}")
    if param.minimum is not None and value < param.minimum:
        raise invalid_params(f"{name} must be >= {param.minimum}")
    if param.maximum is not None and value > param.maximum:
        raise invalid_params(f"{name} must be <= {param.maximum}")
    return value


def validate_arguments(tool: ToolDef, arguments: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the validated argument dict for ``tool``.

    Every declared parameter appears in the result: required ones as given,
    optional ones as given or their declared default (``None`` when the
    descriptor has none). Keys the tool does not declare are dropped.

    Raises:
        ToolError: ``InvalidParams`` when a required parameter is missing or
            any supplied value does not match its descriptor.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise invalid_params("arguments must be an object")

    validated: dict[str, Any] = {}
    for name, param in tool.parameters:
        value = arguments.get(name)
        if value is None:
            if name in tool.required:
                raise invalid_params(f"{name} is required")
            validated[name] = param.default
            continue
        validated[name] = _check_value(name, value, param)
    return validated


__all__ = ["validate_arguments"]
