"""Chat-completion datatypes shared by the wrapped and instrumented clients.

Key types:
- `ChatMessage`, `ChatCompletionRequest`: outbound request shape.
- `Usage`, `ChatCompletionResponse`: parsed response shape.
- `CallContext`: per-call timeout and cancellation signal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One chat message.

    Attributes:
        role: Message role (`system`, `user`, `assistant`, ...).
        content: Plain text message content.
    """

    role: str
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class ChatCompletionRequest:
    """Chat-completions request forwarded verbatim to the provider.

    Attributes:
        model: Model identifier.
        messages: Ordered conversation messages.
        temperature: Optional sampling temperature.
        max_tokens: Optional completion token cap.
        extra: Additional provider parameters merged into the JSON body.
    """

    model: str
    messages: tuple[ChatMessage, ...]
    temperature: float | None = None
    max_tokens: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body for `/chat/completions`."""

        payload: dict[str, Any] = dict(self.extra)
        payload["model"] = self.model
        payload["messages"] = [message.to_payload() for message in self.messages]
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload


@dataclass(frozen=True, slots=True)
class Usage:
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True, slots=True)
class ChatCompletionResponse:
    """Parsed chat-completions response.

    Attributes:
        id: Provider response identifier.
        model: Model that served the request.
        choices: Assistant message texts in choice order.
        usage: Token usage, or `None` when the provider omitted it.
        raw: Decoded JSON payload as returned by the provider.
    """

    id: str
    model: str
    choices: tuple[str, ...]
    usage: Usage | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @property
    def text(self) -> str:
        """Return the first choice text, or an empty string."""

        return self.choices[0] if self.choices else ""


@dataclass(frozen=True, slots=True)
class CallContext:
    """Caller-supplied limits for one wrapped call.

    Attributes:
        timeout_seconds: Overrides the client's default request timeout.
        cancel_event: When set before the request is issued, the call fails fast.
    """

    timeout_seconds: float | None = None
    cancel_event: threading.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
