"""
OpenTelemetry Tracer Configuration

Initializes OTEL with an OTLP exporter for distributed tracing.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION

logger = logging.getLogger("fireworks-proxy.telemetry")

_tracer = None
_initialized = False


@dataclass
class TracingConfig:
    """Configuration for OpenTelemetry tracing."""

    service_name: str = "fireworks-proxy"
    service_version: str = "0.1.0"

    # OTLP exporter settings
    otlp_endpoint: Optional[str] = None  # e.g., "http://localhost:4317"
    otlp_insecure: bool = True

    # Sampling
    sample_rate: float = 1.0  # 1.0 = trace everything

    # Console exporter for debugging
    console_export: bool = False

    @classmethod
    def from_env(cls) -> "TracingConfig":
        """Load config from environment variables."""
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", "fireworks-proxy"),
            service_version=os.getenv("FIREWORKS_PROXY_VERSION", "0.1.0"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
            otlp_insecure=os.getenv("OTEL_EXPORTER_OTLP_INSECURE", "true").lower() == "true",
            sample_rate=float(os.getenv("OTEL_SAMPLE_RATE", "1.0")),
            console_export=os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true",
        )

    @property
    def exporting(self) -> bool:
        return bool(self.otlp_endpoint) or self.console_export


def init_telemetry(config: Optional[TracingConfig] = None) -> bool:
    """
    Initialize OpenTelemetry tracing.

    Does nothing when no exporter is configured; spans then go to the
    API's default no-op provider. Returns True if a provider was installed.
    """
    global _tracer, _initialized

    if _initialized:
        return True

    config = config or TracingConfig.from_env()
    if not config.exporting:
        logger.debug("OTEL: no exporter configured, tracing disabled")
        return False

    try:
        resource = Resource.create({
            SERVICE_NAME: config.service_name,
            SERVICE_VERSION: config.service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        })

        provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(config.sample_rate),
        )

        if config.otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            otlp_exporter = OTLPSpanExporter(
                endpoint=config.otlp_endpoint,
                insecure=config.otlp_insecure,
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(f"OTEL: OTLP exporter configured → {config.otlp_endpoint}")

        if config.console_export:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            logger.info("OTEL: Console exporter enabled")

        trace.set_tracer_provider(provider)

        _tracer = trace.get_tracer(config.service_name, config.service_version)
        _initialized = True

        logger.info(f"OTEL: Telemetry initialized for {config.service_name}")
        return True

    except Exception as e:
        logger.error(f"OTEL: Failed to initialize ({e})")
        return False


def get_tracer():
    """
    Get the configured tracer instance.

    Falls back to the global provider's tracer (no-op unless one is set).
    """
    if _tracer is not None:
        return _tracer
    return trace.get_tracer("fireworks-proxy")
