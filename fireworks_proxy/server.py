"""
Fireworks Proxy Server

FastAPI application exposing the proxy handler over HTTP.
"""

import logging
from typing import Optional
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response

from . import __version__
from .config import ProxyConfig, load_config
from .llm import LLMProxy
from .models import InboundRequest
from .telemetry import init_telemetry

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("fireworks-proxy")

# Every method reaches the handler so it can answer 405 itself
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

NETLIFY_FUNCTION_PATH = "/.netlify/functions/api-proxy"


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    config: Optional[ProxyConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create FastAPI application."""

    config = config or ProxyConfig.from_env()
    proxy = LLMProxy(config, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        init_telemetry(config.telemetry)
        logger.info("Fireworks Proxy starting...")
        if not config.has_api_key:
            logger.warning(
                f"{config.upstream.api_key_env} is not set; POST requests will fail with 500"
            )
        yield
        logger.info("Fireworks Proxy shutting down...")

    app = FastAPI(
        title="Fireworks Proxy",
        description="Credential-hiding proxy for the Fireworks chat-completions API",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.proxy = proxy
    app.state.config = config

    # =========================================================================
    # Routes
    # =========================================================================

    @app.get("/health")
    async def health():
        """Health check and service info."""
        return {
            "status": "ok",
            "service": "fireworks-proxy",
            "version": __version__,
            "upstream": config.upstream.url,
            "timeout_seconds": config.upstream.timeout_seconds,
            "api_key_configured": config.has_api_key,
        }

    async def proxy_request(request: Request) -> Response:
        """Translate the HTTP request into an event and run the handler."""
        raw = await request.body()
        inbound = InboundRequest(
            http_method=request.method,
            headers=dict(request.headers),
            body=raw or None,
        )

        envelope = await proxy.handle(inbound)

        return Response(
            content=envelope.body,
            status_code=envelope.status_code,
            headers=envelope.headers,
        )

    paths = {config.server.path, NETLIFY_FUNCTION_PATH}
    for path in sorted(paths):
        app.add_api_route(path, proxy_request, methods=PROXY_METHODS)

    return app


# =============================================================================
# Main
# =============================================================================

def main(config_path: str = None):
    """Run the Fireworks Proxy server."""
    import uvicorn

    config = load_config(config_path) if config_path else ProxyConfig.from_env()

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        workers=config.server.workers,
        reload=config.server.reload,
        log_level="info"
    )


if __name__ == "__main__":
    main()
