"""
Upstream forwarder.

Issues the single outbound call to the inference endpoint under a
cancellation deadline and classifies how it ended.
"""

import json
import time
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..errors import NetworkError, ProxyError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger("fireworks-proxy.upstream")


@dataclass
class UpstreamResponse:
    """A successful upstream reply, decoded."""
    status_code: int
    body: Any
    latency_ms: int


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))


def _decode_details(response: httpx.Response) -> Any:
    """Error bodies are relayed as JSON when they parse, text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


class UpstreamForwarder:
    """
    Forwards a decoded chat-completion body to the provider.

    Exactly one attempt is made. The whole exchange (connect, send,
    read) runs inside ``asyncio.wait_for``; when the deadline passes the
    in-flight request is cancelled and awaited before this returns.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def _send(self, client: httpx.AsyncClient, body: Any, api_key: str) -> httpx.Response:
        return await client.post(
            self.url,
            content=json.dumps(body),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
        )

    async def forward(self, body: Any, api_key: str) -> UpstreamResponse:
        """
        Send ``body`` verbatim and return the decoded success body.

        Raises:
            UpstreamTimeoutError: deadline expired, request cancelled
            UpstreamError: provider returned a non-2xx status
            NetworkError: transport failure or undecodable success body

        Every raised error carries ``latency_ms``.
        """
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.timeout_seconds,
            ) as client:
                response = await asyncio.wait_for(
                    self._send(client, body, api_key),
                    timeout=self.timeout_seconds,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            error: ProxyError = UpstreamTimeoutError(self.timeout_seconds)
            error.latency_ms = _elapsed_ms(start)
            logger.warning(f"Upstream timed out after {error.latency_ms}ms (limit {self.timeout_seconds:g}s)")
            raise error
        except httpx.HTTPError as e:
            error = NetworkError(str(e) or e.__class__.__name__)
            error.latency_ms = _elapsed_ms(start)
            logger.error(f"Upstream request failed: {e.__class__.__name__}")
            raise error from e

        latency_ms = _elapsed_ms(start)
        logger.info(f"Upstream responded {response.status_code} in {latency_ms}ms")

        if not response.is_success:
            error = UpstreamError(
                status_code=response.status_code,
                reason=response.reason_phrase,
                details=_decode_details(response),
            )
            error.latency_ms = latency_ms
            raise error

        try:
            data = response.json()
        except ValueError as e:
            error = NetworkError(f"Invalid JSON from upstream: {e}")
            error.latency_ms = latency_ms
            raise error from e

        return UpstreamResponse(
            status_code=response.status_code,
            body=data,
            latency_ms=latency_ms,
        )
