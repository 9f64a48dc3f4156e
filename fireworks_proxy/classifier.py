"""
Reasoning method classification.

Labels the prompting strategy of a chat request from its first message.
This is telemetry only; the forwarded payload is never changed.
"""

from enum import Enum
from typing import Any, Optional


class ReasoningMethod(str, Enum):
    """Prompting strategy detected in a request."""

    STANDARD = "Standard"
    CHAIN_OF_DRAFT = "CoD"
    CHAIN_OF_THOUGHT = "CoT"


# Checked in order; the first marker found wins
MARKERS = (
    ("Chain of Draft", ReasoningMethod.CHAIN_OF_DRAFT),
    ("Chain of Thought", ReasoningMethod.CHAIN_OF_THOUGHT),
)


def classify_text(text: Optional[str]) -> ReasoningMethod:
    """Case-sensitive substring match of ``text`` against known markers."""
    if not isinstance(text, str):
        return ReasoningMethod.STANDARD
    for marker, method in MARKERS:
        if marker in text:
            return method
    return ReasoningMethod.STANDARD


def classify_request(body: Any) -> ReasoningMethod:
    """
    Classify a decoded chat-completion body by ``messages[0].content``.

    Missing messages, a malformed first message, or non-text content all
    yield ``Standard``.
    """
    if not isinstance(body, dict):
        return ReasoningMethod.STANDARD

    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        return ReasoningMethod.STANDARD

    first = messages[0]
    if not isinstance(first, dict):
        return ReasoningMethod.STANDARD

    return classify_text(first.get("content"))
