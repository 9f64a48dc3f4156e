"""
Fireworks Proxy - Credential-hiding gateway for LLM chat completions

Two hosting modes:
1. Serverless function - ``fireworks_proxy.function.handler(event, context)``
2. HTTP server - FastAPI app from ``fireworks_proxy.server.create_app``
"""

__version__ = "0.1.0"
__author__ = "Fireworks Proxy Contributors"

from .classifier import ReasoningMethod, classify_request, classify_text
from .config import ProxyConfig, load_config
from .llm import LLMProxy
from .models import InboundRequest, ResponseEnvelope

__all__ = [
    "__version__",
    "ProxyConfig",
    "load_config",
    "LLMProxy",
    "InboundRequest",
    "ResponseEnvelope",
    "ReasoningMethod",
    "classify_request",
    "classify_text",
]
