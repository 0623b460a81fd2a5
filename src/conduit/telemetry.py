"""OpenTelemetry helpers for tool dispatch."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace

logger = logging.getLogger("conduit.telemetry")

_TRACER_NAME = "conduit"


def generate_request_id() -> str:
    """Generate a UUID4 request ID for correlating tool calls."""
    return str(uuid.uuid4())


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run the body inside a span; a no-op span when no SDK is configured.

    Args:
        name: Span name (e.g., "handle_tool/git_status")
        attributes: Span attributes dict
    """
    tracer = trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(name, attributes=attributes or {}) as span:
        yield span


def set_span_attribute(span: trace.Span, key: str, value: Any) -> None:
    try:
        span.set_attribute(key, value)
    except Exception as exc:
        logger.debug("Failed to set span attribute %s: %s", key, exc)


__all__ = ["generate_request_id", "set_span_attribute", "trace_span"]
