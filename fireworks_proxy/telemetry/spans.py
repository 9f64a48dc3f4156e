"""
Proxy-specific span helpers.

Creates structured spans for each invocation and its upstream call.
"""

import logging
from enum import Enum
from typing import Optional, Dict
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .tracer import get_tracer

logger = logging.getLogger("fireworks-proxy.telemetry")


class SpanKind(Enum):
    """Types of proxy spans."""

    INVOCATION = "invocation"
    UPSTREAM = "upstream"


class ProxySpan:
    """
    Helper for creating proxy-specific spans.

    Usage:
        with ProxySpan.upstream(model="m", reasoning_method="CoD") as span:
            span.set_attribute("custom", "value")
    """

    @staticmethod
    @contextmanager
    def invocation(method: str, path: Optional[str] = None):
        """Create a span covering one handler invocation."""
        tracer = get_tracer()

        with tracer.start_as_current_span(
            "proxy.invocation",
            attributes={
                "proxy.span_kind": SpanKind.INVOCATION.value,
                "http.request.method": method,
                "url.path": path or "",
            }
        ) as span:
            yield span

    @staticmethod
    @contextmanager
    def upstream(
        model: Optional[str],
        reasoning_method: str,
        url: str,
    ):
        """Create a span for the single outbound call."""
        tracer = get_tracer()

        with tracer.start_as_current_span(
            "proxy.upstream",
            kind=trace.SpanKind.CLIENT,
            attributes={
                "proxy.span_kind": SpanKind.UPSTREAM.value,
                "llm.model": model or "",
                "llm.reasoning_method": reasoning_method,
                "server.address": url,
            }
        ) as span:
            yield span


def record_outcome(span, status_code: int, latency_ms: Optional[int] = None, error: Optional[str] = None):
    """Attach the envelope status (and latency, if measured) to a span."""
    if span is None:
        return

    span.set_attribute("http.response.status_code", status_code)
    if latency_ms is not None:
        span.set_attribute("proxy.latency_ms", latency_ms)
    if error:
        span.set_status(Status(StatusCode.ERROR, error))


def get_trace_context() -> Dict[str, str]:
    """
    Get current trace context for log correlation.

    Returns trace_id and span_id, or an empty dict outside a sampled span.
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx is None or not ctx.is_valid:
        return {}

    return {
        "trace_id": format(ctx.trace_id, '032x'),
        "span_id": format(ctx.span_id, '016x'),
    }
