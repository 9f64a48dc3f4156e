"""
LLM API Proxy

HTTP request proxy for the Fireworks chat-completions API with:
- Server-held API key
- CORS and method gating
- Bounded upstream wait
- Reasoning method telemetry
"""

from .forwarder import UpstreamForwarder, UpstreamResponse
from .proxy import LLMProxy

__all__ = ["LLMProxy", "UpstreamForwarder", "UpstreamResponse"]
