"""
Serverless entry point.

Hosts that invoke a function per request with an event dict (e.g.
Netlify or AWS Lambda style) call ``handler``. Configuration is read
from the environment once per process.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .config import ProxyConfig
from .llm import LLMProxy
from .models import InboundRequest
from .telemetry import init_telemetry

logger = logging.getLogger("fireworks-proxy.function")

_proxy: Optional[LLMProxy] = None


def get_proxy() -> LLMProxy:
    """Build the process-wide proxy on first use."""
    global _proxy

    if _proxy is None:
        config = ProxyConfig.from_env()
        init_telemetry(config.telemetry)
        _proxy = LLMProxy(config)
        logger.info(f"Proxy ready (upstream={config.upstream.url})")
    return _proxy


async def async_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Async variant for hosts that already run an event loop."""
    request = InboundRequest.from_event(event)
    envelope = await get_proxy().handle(request)
    return envelope.to_event()


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Handle one platform event and return the response dict."""
    return asyncio.run(async_handler(event, context))
