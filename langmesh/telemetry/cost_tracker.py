"""Session-level usage and cost accounting.

Responsibilities:
- Accumulate request counts, token counts, and estimated USD cost per client.
- Provide a rounded summary for the CLI and host applications.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading

from .events import TelemetryEvent


@dataclass(slots=True)
class CostTracker:
    """Collect and summarize usage counters from recorded telemetry events."""

    requests: int = 0
    errors: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost_usd: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_event(self, event: TelemetryEvent) -> None:
        """Fold one telemetry event into the running totals."""

        with self._lock:
            self.requests += 1
            if event.is_error:
                self.errors += 1
            self.prompt_tokens += event.token_usage.prompt_tokens
            self.completion_tokens += event.token_usage.completion_tokens
            self.cost_usd += max(0.0, event.cost_estimate_usd)

    def summary(self) -> dict[str, float]:
        """Return a summary dictionary rounded for stable display."""

        with self._lock:
            return {
                "requests": self.requests,
                "errors": self.errors,
                "prompt_tokens": self.prompt_tokens,
                "completion_tokens": self.completion_tokens,
                "total_tokens": self.prompt_tokens + self.completion_tokens,
                "cost_usd": round(self.cost_usd, 6),
            }
