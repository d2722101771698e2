"""Telemetry event records shipped to the collection endpoint.

Key types:
- `TokenUsage`: prompt/completion/total token counts.
- `TelemetryEvent`: immutable record of one completed call attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import secrets
import time
from typing import Any


CHAT_COMPLETIONS_ENDPOINT = "chat.completions"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts for one call; all zero when usage is unknown."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        prompt_tokens: int,
        completion_tokens: int,
        total_tokens: int | None = None,
    ) -> TokenUsage:
        """Build usage, deriving `total_tokens` when not reported."""

        prompt = max(0, prompt_tokens)
        completion = max(0, completion_tokens)
        total = prompt + completion if not total_tokens else max(0, total_tokens)
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """One completed chat-completion call attempt.

    Attributes:
        request_id: Identifier unique within the telemetry window.
        started_at: UTC time the call was issued.
        finished_at: UTC time the outcome was observed.
        model: Requested model identifier.
        endpoint: Logical API surface, always `chat.completions` here.
        latency_ms: Non-negative elapsed milliseconds.
        token_usage: Token counts, zero on error.
        cost_estimate_usd: Estimated USD cost, zero on error.
        status: `success` or `error`.
        error_class: Error classification tag on failure.
        error_message: Human-readable error text on failure.
    """

    request_id: str
    started_at: datetime
    finished_at: datetime
    model: str
    endpoint: str = CHAT_COMPLETIONS_ENDPOINT
    latency_ms: int = 0
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    cost_estimate_usd: float = 0.0
    status: str = STATUS_SUCCESS
    error_class: str | None = None
    error_message: str | None = None

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready wire form; error keys are omitted when absent."""

        payload: dict[str, Any] = {
            "request_id": self.request_id,
            "timestamp_start": _format_timestamp(self.started_at),
            "timestamp_end": _format_timestamp(self.finished_at),
            "model": self.model,
            "endpoint": self.endpoint,
            "latency_ms": self.latency_ms,
            "token_usage": self.token_usage.to_dict(),
            "cost_estimate_usd": self.cost_estimate_usd,
            "status": self.status,
        }
        if self.error_class:
            payload["error_class"] = self.error_class
        if self.error_message:
            payload["error_message"] = self.error_message
        return payload


def new_request_id() -> str:
    """Return `req_<unix-ms>_<8 hex chars>`."""

    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def elapsed_ms(started: float, finished: float) -> int:
    """Convert two monotonic readings into non-negative whole milliseconds."""

    return max(0, int((finished - started) * 1000))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
