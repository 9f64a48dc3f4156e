"""Tests for the LLM request handler."""

import json
import asyncio

import httpx
import pytest

from fireworks_proxy.config import ProxyConfig, UpstreamConfig
from fireworks_proxy.errors import UpstreamTimeoutError
from fireworks_proxy.llm import LLMProxy
from fireworks_proxy.models import InboundRequest


API_KEY = "fw-test-secret-key-0123456789"

CHAT_BODY = {
    "model": "accounts/fireworks/models/llama-v3p1-8b-instruct",
    "messages": [{"role": "user", "content": "Use Chain of Draft reasoning"}],
    "max_tokens": 256,
}

COMPLETION = {
    "id": "cmpl-1",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "4"}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 1},
}


class FakeUpstream:
    """Async MockTransport handler that records calls and cancellation."""

    def __init__(self, status_code=200, payload=None, text=None, delay=0.0, exc=None):
        self.status_code = status_code
        self.payload = COMPLETION if payload is None and text is None else payload
        self.text = text
        self.delay = delay
        self.exc = exc
        self.calls = []
        self.cancelled = False

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.exc is not None:
            raise self.exc
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.payload)


def make_proxy(upstream, api_key=API_KEY, timeout_seconds=120.0):
    config = ProxyConfig(
        upstream=UpstreamConfig(timeout_seconds=timeout_seconds),
        api_key=api_key,
    )
    return LLMProxy(config, transport=httpx.MockTransport(upstream))


def run(proxy, method="POST", body=None):
    request = InboundRequest(http_method=method, headers={}, body=body)
    return asyncio.run(proxy.handle(request))


@pytest.fixture
def upstream():
    return FakeUpstream()


# =============================================================================
# Gate
# =============================================================================

def test_preflight(upstream):
    """OPTIONS yields 200, empty body and CORS headers."""
    envelope = run(make_proxy(upstream), method="OPTIONS")

    assert envelope.status_code == 200
    assert envelope.body == ""
    assert envelope.headers["Access-Control-Allow-Origin"] == "*"
    assert envelope.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
    assert envelope.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert upstream.calls == []


def test_preflight_ignores_missing_key_and_garbage_body(upstream):
    envelope = run(make_proxy(upstream, api_key=None), method="OPTIONS", body="{not json")

    assert envelope.status_code == 200
    assert envelope.body == ""


@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "HEAD"])
def test_method_not_allowed(upstream, method):
    envelope = run(make_proxy(upstream), method=method, body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 405
    assert envelope.headers["Allow"] == "POST"
    assert envelope.headers["Content-Type"] == "application/json"
    assert envelope.payload() == {"error": "Method Not Allowed"}
    assert upstream.calls == []


def test_method_check_precedes_credential_check(upstream):
    envelope = run(make_proxy(upstream, api_key=None), method="GET")
    assert envelope.status_code == 405


def test_lowercase_post_is_accepted(upstream):
    envelope = run(make_proxy(upstream), method="post", body=json.dumps(CHAT_BODY))
    assert envelope.status_code == 200


# =============================================================================
# Credential and body
# =============================================================================

@pytest.mark.parametrize("api_key", [None, ""])
def test_missing_api_key(upstream, api_key):
    """No credential: 500 and the upstream is never called."""
    envelope = run(make_proxy(upstream, api_key=api_key), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 500
    assert envelope.payload() == {"error": "API key not configured on server"}
    assert len(upstream.calls) == 0


@pytest.mark.parametrize("body", [None, ""])
def test_missing_body(upstream, body):
    envelope = run(make_proxy(upstream), body=body)

    assert envelope.status_code == 400
    assert envelope.payload() == {"error": "Request body is required"}
    assert len(upstream.calls) == 0


def test_invalid_json_body(upstream):
    envelope = run(make_proxy(upstream), body="{not json")

    assert envelope.status_code == 400
    assert envelope.payload() == {"error": "Bad Request", "message": "Invalid request body"}
    assert len(upstream.calls) == 0


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_standard_json_constants_are_invalid(upstream, literal):
    """NaN and Infinity are not JSON; they get the 400, not a 500."""
    body = '{"model": "m", "messages": [{"role": "user", "content": "hi"}], "temperature": %s}' % literal
    envelope = run(make_proxy(upstream), body=body)

    assert envelope.status_code == 400
    assert envelope.payload() == {"error": "Bad Request", "message": "Invalid request body"}
    assert len(upstream.calls) == 0


def test_invalid_utf8_bytes_body(upstream):
    envelope = run(make_proxy(upstream), body=b'{"model": "\xff\xfe"}')

    assert envelope.status_code == 400
    assert envelope.payload() == {"error": "Bad Request", "message": "Invalid request body"}
    assert len(upstream.calls) == 0


def test_utf8_bytes_body_is_forwarded(upstream):
    body = {"model": "m", "messages": [{"role": "user", "content": "héllo Chain of Draft"}]}
    envelope = run(make_proxy(upstream), body=json.dumps(body, ensure_ascii=False).encode("utf-8"))

    assert envelope.status_code == 200
    assert envelope.payload()["performance"]["reasoning_method"] == "CoD"
    assert json.loads(upstream.calls[0].content) == body


# =============================================================================
# Forwarding
# =============================================================================

def test_forwards_body_verbatim_with_bearer_key(upstream):
    body = {**CHAT_BODY, "temperature": 0.2, "stop": ["\n"]}
    run(make_proxy(upstream), body=json.dumps(body))

    assert len(upstream.calls) == 1
    sent = upstream.calls[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://api.fireworks.ai/inference/v1/chat/completions"
    assert sent.headers["Authorization"] == f"Bearer {API_KEY}"
    assert sent.headers["Content-Type"] == "application/json"
    assert json.loads(sent.content) == body


def test_success_adds_performance(upstream):
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 200
    assert envelope.headers["Content-Type"] == "application/json"
    assert envelope.headers["Access-Control-Allow-Origin"] == "*"
    assert envelope.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"

    data = envelope.payload()
    assert data["choices"] == COMPLETION["choices"]
    assert data["usage"] == COMPLETION["usage"]
    performance = data["performance"]
    assert isinstance(performance["response_time_ms"], int)
    assert performance["response_time_ms"] >= 0
    assert performance["reasoning_method"] == "CoD"


@pytest.mark.parametrize("content, expected", [
    ("Use Chain of Draft reasoning", "CoD"),
    ("Chain of Thought", "CoT"),
    ("Just answer", "Standard"),
])
def test_reasoning_method_in_performance(upstream, content, expected):
    body = {**CHAT_BODY, "messages": [{"role": "user", "content": content}]}
    envelope = run(make_proxy(upstream), body=json.dumps(body))

    assert envelope.payload()["performance"]["reasoning_method"] == expected


def test_null_body_is_forwarded_as_null(upstream):
    """A JSON null is a body, not a missing one, and is sent as-is."""
    envelope = run(make_proxy(upstream), body="null")

    assert envelope.status_code == 200
    assert len(upstream.calls) == 1
    assert upstream.calls[0].content == b"null"
    assert upstream.calls[0].headers["Content-Type"] == "application/json"


def test_body_without_messages_is_forwarded(upstream):
    envelope = run(make_proxy(upstream), body=json.dumps({"model": "m"}))

    assert envelope.status_code == 200
    assert envelope.payload()["performance"]["reasoning_method"] == "Standard"
    assert json.loads(upstream.calls[0].content) == {"model": "m"}


def test_success_body_with_error_key_keeps_no_performance():
    upstream = FakeUpstream(payload={"error": {"message": "soft failure"}})
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 200
    assert envelope.payload() == {"error": {"message": "soft failure"}}


def test_non_object_success_body_is_relayed():
    upstream = FakeUpstream(payload=[1, 2, 3])
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 200
    assert envelope.payload() == [1, 2, 3]


# =============================================================================
# Failures
# =============================================================================

def test_upstream_error_status_is_relayed():
    upstream = FakeUpstream(status_code=429, payload={"error": "rate limited"})
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 429
    assert envelope.payload() == {
        "error": "API Error: Too Many Requests",
        "details": {"error": "rate limited"},
    }
    assert "Cache-Control" not in envelope.headers


def test_upstream_error_text_details():
    upstream = FakeUpstream(status_code=502, text="<html>bad gateway</html>")
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 502
    assert envelope.payload() == {
        "error": "API Error: Bad Gateway",
        "details": "<html>bad gateway</html>",
    }


def test_timeout_cancels_upstream_call():
    """A slow upstream is cancelled at the deadline and reported as 504."""
    upstream = FakeUpstream(delay=5.0)
    envelope = run(make_proxy(upstream, timeout_seconds=0.05), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 504
    data = envelope.payload()
    assert data["error"] == "Gateway Timeout"
    assert "took too long to complete" in data["message"]
    assert len(upstream.calls) == 1
    assert upstream.cancelled is True


def test_default_timeout_message():
    error = UpstreamTimeoutError(120.0)

    assert error.status_code == 504
    assert error.body() == {
        "error": "Gateway Timeout",
        "message": (
            "The request to the LLM API took too long to complete (>120 seconds). "
            "Try reducing complexity or using fewer tokens."
        ),
    }


def test_connection_failure_is_internal_error():
    upstream = FakeUpstream(exc=httpx.ConnectError("connection refused"))
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 500
    data = envelope.payload()
    assert data["error"] == "Internal Server Error"
    assert "connection refused" in data["message"]


def test_undecodable_success_body_is_internal_error():
    upstream = FakeUpstream(status_code=200, text="not json at all")
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 500
    assert envelope.payload()["error"] == "Internal Server Error"


def test_api_key_never_leaks():
    upstream = FakeUpstream(exc=httpx.ConnectError(f"could not send {API_KEY}"))
    envelope = run(make_proxy(upstream), body=json.dumps(CHAT_BODY))

    assert envelope.status_code == 500
    assert API_KEY not in envelope.body
    assert API_KEY not in json.dumps(envelope.headers)


def test_api_key_never_logged(caplog):
    upstream = FakeUpstream()
    with caplog.at_level("DEBUG"):
        run(make_proxy(upstream), body=json.dumps(CHAT_BODY))
        run(make_proxy(upstream, api_key=None), body=json.dumps(CHAT_BODY))

    assert API_KEY not in caplog.text
    assert "FIREWORKS_API_KEY" in caplog.text


# =============================================================================
# Determinism
# =============================================================================

def test_repeat_requests_are_identical_except_latency(upstream):
    proxy = make_proxy(upstream)
    first = run(proxy, body=json.dumps(CHAT_BODY))
    second = run(proxy, body=json.dumps(CHAT_BODY))

    assert first.status_code == second.status_code
    assert first.headers == second.headers

    a, b = first.payload(), second.payload()
    a["performance"].pop("response_time_ms")
    b["performance"].pop("response_time_ms")
    assert a == b
    assert json.dumps(a) == json.dumps(b)
