"""
Configuration management for Fireworks Proxy.

Supports YAML configuration with environment variable expansion, or a
pure environment-driven setup for serverless hosts.
"""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Any

import yaml

from .telemetry import TracingConfig


DEFAULT_UPSTREAM_URL = "https://api.fireworks.ai/inference/v1/chat/completions"
DEFAULT_API_KEY_ENV = "FIREWORKS_API_KEY"

# Sits just under the hosting platform's own execution ceiling
DEFAULT_TIMEOUT_SECONDS = 120.0


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8888
    workers: int = 1
    reload: bool = False
    path: str = "/api-proxy"


@dataclass
class UpstreamConfig:
    """Upstream inference endpoint configuration."""
    url: str = DEFAULT_UPSTREAM_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    api_key_env: str = DEFAULT_API_KEY_ENV


@dataclass
class ProxyConfig:
    """Root configuration for Fireworks Proxy.

    ``api_key`` is resolved once at process start and is read-only
    afterwards; handlers receive it through this object, never from the
    environment directly.
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    telemetry: TracingConfig = field(default_factory=TracingConfig)
    api_key: Optional[str] = field(default=None, repr=False)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """Load config from environment variables."""
        upstream = UpstreamConfig(
            url=os.getenv("UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
            timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
            api_key_env=os.getenv("API_KEY_ENV", DEFAULT_API_KEY_ENV),
        )
        server = ServerConfig(
            host=os.getenv("PROXY_HOST", "0.0.0.0"),
            port=int(os.getenv("PROXY_PORT", "8888")),
            path=os.getenv("PROXY_PATH", "/api-proxy"),
        )
        return cls(
            server=server,
            upstream=upstream,
            telemetry=TracingConfig.from_env(),
            api_key=resolve_api_key(upstream.api_key_env),
        )


def resolve_api_key(env_name: str = DEFAULT_API_KEY_ENV) -> Optional[str]:
    """Read the upstream credential; empty values count as absent."""
    value = os.environ.get(env_name, "").strip()
    return value or None


def mask_secret(value: Optional[str]) -> str:
    """Render a secret for display without revealing it."""
    if not value:
        return "<not set>"
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}…{value[-2:]}"


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values."""
    if isinstance(value, str):
        # Match ${VAR} or $VAR patterns
        pattern = r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


def load_config(path: str | Path) -> ProxyConfig:
    """Load configuration from YAML file."""
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    data = expand_env_vars(raw)

    server_data = data.get("server", {}) or {}
    server = ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 8888)),
        workers=int(server_data.get("workers", 1)),
        reload=bool(server_data.get("reload", False)),
        path=server_data.get("path", "/api-proxy"),
    )

    upstream_data = data.get("upstream", {}) or {}
    upstream = UpstreamConfig(
        url=upstream_data.get("url", DEFAULT_UPSTREAM_URL),
        timeout_seconds=float(upstream_data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        api_key_env=upstream_data.get("api_key_env", DEFAULT_API_KEY_ENV),
    )

    telemetry_data = data.get("telemetry", {}) or {}
    env_telemetry = TracingConfig.from_env()
    telemetry = TracingConfig(
        service_name=telemetry_data.get("service_name", env_telemetry.service_name),
        service_version=env_telemetry.service_version,
        otlp_endpoint=telemetry_data.get("otlp_endpoint", env_telemetry.otlp_endpoint),
        otlp_insecure=telemetry_data.get("otlp_insecure", env_telemetry.otlp_insecure),
        sample_rate=float(telemetry_data.get("sample_rate", env_telemetry.sample_rate)),
        console_export=telemetry_data.get("console_export", env_telemetry.console_export),
    )

    # The key itself never lives in the file, only the variable naming it
    return ProxyConfig(
        server=server,
        upstream=upstream,
        telemetry=telemetry,
        api_key=resolve_api_key(upstream.api_key_env),
    )


def create_default_config() -> str:
    """Generate default configuration YAML."""
    return """# Fireworks Proxy Configuration

server:
  host: 0.0.0.0
  port: 8888
  path: /api-proxy

# Upstream inference API
upstream:
  url: https://api.fireworks.ai/inference/v1/chat/completions
  timeout_seconds: 120
  # Name of the environment variable holding the bearer key
  api_key_env: FIREWORKS_API_KEY

# OpenTelemetry tracing
telemetry:
  service_name: fireworks-proxy
  # otlp_endpoint: http://localhost:4317
  console_export: false
"""
