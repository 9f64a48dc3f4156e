"""
Proxy Models

Pydantic models for the inbound event, the chat-completion payload,
and the response envelope returned to the hosting platform.
"""

import json
from typing import Optional, Dict, List, Any, Union
from pydantic import BaseModel, ConfigDict, Field

from .classifier import ReasoningMethod


JSON_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
}

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
}


class InboundRequest(BaseModel):
    """HTTP-like event handed to the proxy by the host."""
    model_config = ConfigDict(populate_by_name=True)

    http_method: str = Field(..., alias="httpMethod")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "InboundRequest":
        """Build from a serverless event dict, tolerating missing keys."""
        return cls(
            http_method=event.get("httpMethod") or "GET",
            headers={str(k): str(v) for k, v in (event.get("headers") or {}).items()},
            body=event.get("body"),
        )

    @property
    def method(self) -> str:
        return self.http_method.upper()


class Message(BaseModel):
    """Chat message; content is treated as opaque text."""
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Any = None


class ChatCompletionRequest(BaseModel):
    """Decoded request body. Unknown fields pass through untouched."""
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    max_tokens: Optional[int] = None


class PerformanceMetadata(BaseModel):
    """Timing block attached to successful bodies."""
    response_time_ms: int = Field(..., ge=0)
    reasoning_method: ReasoningMethod

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_time_ms": self.response_time_ms,
            "reasoning_method": self.reasoning_method.value,
        }


class ResponseEnvelope(BaseModel):
    """The sole output artifact of an invocation."""
    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @classmethod
    def json_response(
        cls,
        status_code: int,
        payload: Any,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> "ResponseEnvelope":
        headers = dict(JSON_HEADERS)
        if extra_headers:
            headers.update(extra_headers)
        return cls(status_code=status_code, headers=headers, body=json.dumps(payload))

    @classmethod
    def preflight(cls) -> "ResponseEnvelope":
        return cls(status_code=200, headers=dict(CORS_PREFLIGHT_HEADERS), body="")

    def payload(self) -> Any:
        """Decode the body; preflight bodies decode to ``None``."""
        return json.loads(self.body) if self.body else None

    def to_event(self) -> Dict[str, Any]:
        """Render in the shape serverless hosts expect."""
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body,
        }
