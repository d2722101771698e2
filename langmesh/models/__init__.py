"""Typed request and response models for langmesh.

These dataclasses are shared by the wrapped client, the instrumented client,
and tests to avoid circular imports.
"""

from .datatypes import (
    CallContext,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Usage,
)

__all__ = [
    "CallContext",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "Usage",
]
