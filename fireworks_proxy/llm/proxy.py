"""
LLM Request Proxy

Handles one inbound request end to end:
- Gate: CORS preflight and method check
- Credential: the configured upstream key, fail closed
- Parse + classify: decode the body, label the reasoning method
- Forward: single upstream call under a deadline
- Normalize: every outcome becomes a JSON ResponseEnvelope
"""

import json
import logging
from typing import Any, Optional, Union

import httpx
from pydantic import ValidationError

from ..classifier import ReasoningMethod, classify_request
from ..config import ProxyConfig
from ..errors import (
    ConfigurationError,
    InvalidBodyError,
    MethodNotAllowed,
    MissingBodyError,
    ProxyError,
)
from ..models import (
    ChatCompletionRequest,
    InboundRequest,
    NO_CACHE_HEADERS,
    PerformanceMetadata,
    ResponseEnvelope,
)
from ..telemetry import ProxySpan, record_outcome
from .forwarder import UpstreamForwarder, UpstreamResponse

logger = logging.getLogger("fireworks-proxy.llm")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_body(raw: Optional[Union[str, bytes]]) -> Any:
    """Decode the raw request body, or raise a 400-class error.

    Bytes must be UTF-8. The non-standard literals NaN and Infinity are
    rejected like any other malformed JSON.
    """
    if raw is None or len(raw) == 0:
        raise MissingBodyError()
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        raise InvalidBodyError()


def describe_request(body: Any) -> str:
    """Short, secret-free summary of a chat request for log lines."""
    try:
        request = ChatCompletionRequest.model_validate(body)
    except ValidationError:
        return "unstructured body"
    return (
        f"model={request.model or 'default'} "
        f"messages={len(request.messages)} "
        f"max_tokens={request.max_tokens}"
    )


def normalize_success(upstream: UpstreamResponse, method: ReasoningMethod) -> ResponseEnvelope:
    """
    Relay a 2xx upstream body as a 200 envelope.

    Performance metadata is added only to JSON objects that carry no
    ``error`` key of their own.
    """
    body = upstream.body
    if isinstance(body, dict) and "error" not in body:
        performance = PerformanceMetadata(
            response_time_ms=upstream.latency_ms,
            reasoning_method=method,
        )
        body = {**body, "performance": performance.to_dict()}

    return ResponseEnvelope.json_response(200, body, extra_headers=NO_CACHE_HEADERS)


def normalize_error(error: ProxyError) -> ResponseEnvelope:
    return ResponseEnvelope.json_response(
        error.status_code,
        error.body(),
        extra_headers=error.headers(),
    )


class LLMProxy:
    """
    Request handler for the Fireworks chat-completions endpoint.

    The configuration, including the API key, is injected once and is
    only read here. No state is shared between invocations.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.forwarder = UpstreamForwarder(
            url=config.upstream.url,
            timeout_seconds=config.upstream.timeout_seconds,
            transport=transport,
        )

    async def handle(self, request: InboundRequest) -> ResponseEnvelope:
        """Run one invocation. Never raises; failures become envelopes."""
        with ProxySpan.invocation(request.method, self.config.server.path) as span:
            try:
                envelope = await self._dispatch(request)
            except ProxyError as e:
                envelope = normalize_error(e)
            except Exception as e:
                logger.exception("Unhandled error while proxying request")
                envelope = ResponseEnvelope.json_response(500, {
                    "error": "Internal Server Error",
                    "message": self._redact(str(e) or e.__class__.__name__),
                })

            record_outcome(span, envelope.status_code)
            return envelope

    async def _dispatch(self, request: InboundRequest) -> ResponseEnvelope:
        method = request.method

        if method == "OPTIONS":
            return ResponseEnvelope.preflight()

        if method != "POST":
            logger.info(f"Rejected {method} request")
            raise MethodNotAllowed(method)

        api_key = self._require_api_key()
        body = parse_body(request.body)

        reasoning = classify_request(body)
        logger.info(f"Forwarding {describe_request(body)} reasoning={reasoning.value}")

        model = body.get("model") if isinstance(body, dict) else None
        with ProxySpan.upstream(model, reasoning.value, self.forwarder.url) as span:
            try:
                upstream = await self.forwarder.forward(body, api_key)
            except ProxyError as e:
                record_outcome(span, e.status_code, e.latency_ms, e.error)
                if isinstance(e.message, str):
                    e.message = self._redact(e.message)
                raise
            record_outcome(span, upstream.status_code, upstream.latency_ms)

        return normalize_success(upstream, reasoning)

    def _require_api_key(self) -> str:
        api_key = self.config.api_key
        if not api_key:
            logger.error(
                f"Upstream API key missing; set {self.config.upstream.api_key_env}"
            )
            raise ConfigurationError()
        return api_key

    def _redact(self, text: str) -> str:
        api_key = self.config.api_key
        if api_key and api_key in text:
            return text.replace(api_key, "[REDACTED]")
        return text
