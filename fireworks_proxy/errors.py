"""
Proxy error taxonomy.

Every failure the handler can report is a ``ProxyError`` subclass that
knows its HTTP status and its JSON body. None of them are retried.
"""

from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base class for errors surfaced to the caller as an envelope."""

    status_code: int = 500
    error: str = "Internal Server Error"
    latency_ms: Optional[int] = None

    def __init__(self, message: Optional[str] = None):
        self.message = message
        super().__init__(message or self.error)

    def body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body

    def headers(self) -> Dict[str, str]:
        return {}


# =============================================================================
# Client protocol errors
# =============================================================================

class ClientProtocolError(ProxyError):
    """The caller broke the request protocol (method or body)."""
    status_code = 400
    error = "Bad Request"


class MethodNotAllowed(ClientProtocolError):
    status_code = 405
    error = "Method Not Allowed"

    def __init__(self, method: str):
        self.method = method
        super().__init__(None)

    def headers(self) -> Dict[str, str]:
        return {"Allow": "POST"}


class MissingBodyError(ClientProtocolError):
    error = "Request body is required"

    def __init__(self):
        super().__init__(None)


class InvalidBodyError(ClientProtocolError):
    def __init__(self, message: str = "Invalid request body"):
        super().__init__(message)


# =============================================================================
# Server-side errors
# =============================================================================

class ConfigurationError(ProxyError):
    """The upstream credential is not configured."""
    error = "API key not configured on server"

    def __init__(self):
        super().__init__(None)


class UpstreamError(ProxyError):
    """The provider answered with a non-success status."""

    def __init__(self, status_code: int, reason: str, details: Any):
        self.status_code = status_code
        self.reason = reason
        self.details = details
        super().__init__(f"API Error: {reason}")

    def body(self) -> Dict[str, Any]:
        return {"error": f"API Error: {self.reason}", "details": self.details}


class UpstreamTimeoutError(ProxyError):
    """The upstream call exceeded its deadline and was cancelled."""
    status_code = 504
    error = "Gateway Timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            "The request to the LLM API took too long to complete "
            f"(>{timeout_seconds:g} seconds). "
            "Try reducing complexity or using fewer tokens."
        )


class NetworkError(ProxyError):
    """Transport or decoding failure talking to the provider."""
    status_code = 500
    error = "Internal Server Error"
