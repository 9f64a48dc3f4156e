"""
Fireworks Proxy Telemetry Module

OpenTelemetry integration for tracing invocations and upstream calls.
"""

from .tracer import init_telemetry, get_tracer, TracingConfig
from .spans import ProxySpan, SpanKind, record_outcome, get_trace_context

__all__ = [
    "init_telemetry",
    "get_tracer",
    "TracingConfig",
    "ProxySpan",
    "SpanKind",
    "record_outcome",
    "get_trace_context",
]
