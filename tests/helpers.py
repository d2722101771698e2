"""Test doubles and builders shared across the langmesh test suite."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import threading
from typing import Any, Sequence

import requests
from requests.adapters import BaseAdapter

from langmesh.models.datatypes import ChatCompletionRequest, ChatMessage
from langmesh.telemetry.events import TelemetryEvent, TokenUsage


class RecordingShipper:
    """Shipper double that keeps every submitted batch in memory."""

    def __init__(self) -> None:
        self.batches: list[list[TelemetryEvent]] = []
        self.closed = False
        self._lock = threading.Lock()

    def submit(self, batch: Sequence[TelemetryEvent]) -> None:
        with self._lock:
            self.batches.append(list(batch))

    def close(self, wait: bool = True, timeout: float | None = None) -> None:
        self.closed = True

    @property
    def events(self) -> list[TelemetryEvent]:
        with self._lock:
            return [event for batch in self.batches for event in batch]


class RecordingAdapter(BaseAdapter):
    """Transport adapter double returning a canned JSON response."""

    def __init__(self, payload: dict[str, Any] | None = None, status_code: int = 200) -> None:
        super().__init__()
        self.payload = payload if payload is not None else chat_payload()
        self.status_code = status_code
        self.requests: list[requests.PreparedRequest] = []

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        self.requests.append(request)
        response = requests.Response()
        response.status_code = self.status_code
        response._content = json.dumps(self.payload).encode("utf-8")
        response._content_consumed = True
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        return None


class BlockingAdapter(RecordingAdapter):
    """Recording adapter whose `send` blocks until `release` is set."""

    def __init__(self, payload: dict[str, Any] | None = None) -> None:
        super().__init__(payload)
        self.started = threading.Event()
        self.release = threading.Event()

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        self.started.set()
        self.release.wait(5.0)
        return super().send(request, **kwargs)


def chat_payload(
    text: str = "Hello there.",
    prompt_tokens: int = 100,
    completion_tokens: int = 50,
    model: str = "gpt-4o",
) -> dict[str, Any]:
    """Build a chat-completions JSON body with usage."""

    return {
        "id": "chatcmpl-test",
        "model": model,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def make_request(model: str = "gpt-4o") -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model=model,
        messages=(ChatMessage(role="user", content="Say hello."),),
    )


def make_event(index: int = 0, **overrides: Any) -> TelemetryEvent:
    now = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    defaults: dict[str, Any] = {
        "request_id": f"req_test_{index:05d}",
        "started_at": now,
        "finished_at": now,
        "model": "gpt-4o",
        "latency_ms": 12,
        "token_usage": TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        "cost_estimate_usd": 0.000075,
    }
    defaults.update(overrides)
    return TelemetryEvent(**defaults)
