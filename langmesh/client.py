"""Instrumented chat-completion client.

Responsibilities:
- Delegate chat completions to `OpenAIChatClient` with inputs and outcome untouched.
- Record exactly one `TelemetryEvent` per call attempt when telemetry is enabled.
- Wire the buffer, periodic flusher, shipper, and optional proxy transport.

Key types:
- `InstrumentedClient`: drop-in wrapper exposing the instrumented call surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import threading
import time

from .config import ConfigLoader, LangmeshConfig
from .llm.openai_client import OpenAIChatClient
from .models.datatypes import CallContext, ChatCompletionRequest, ChatCompletionResponse
from .telemetry.buffer import PeriodicFlusher, TelemetryBuffer
from .telemetry.cost_tracker import CostTracker
from .telemetry.events import (
    CHAT_COMPLETIONS_ENDPOINT,
    STATUS_ERROR,
    STATUS_SUCCESS,
    TelemetryEvent,
    TokenUsage,
    elapsed_ms,
    new_request_id,
    utc_now,
)
from .telemetry.logger import TelemetryLogger
from .telemetry.pricing import CostEstimator
from .telemetry.shipper import TelemetryShipper
from .transport import build_chat_session


@dataclass(frozen=True, slots=True)
class _CallMarker:
    request_id: str
    started_at: datetime
    started: float


class InstrumentedClient:
    """Chat-completion client that records telemetry for every call.

    Only `completion` is instrumented. Uninstrumented operations of the
    wrapped client are reachable explicitly through `passthrough`.
    """

    def __init__(
        self,
        api_key: str,
        config: LangmeshConfig | None = None,
        *,
        chat_client: OpenAIChatClient | None = None,
        shipper: TelemetryShipper | None = None,
        estimator: CostEstimator | None = None,
        start_flusher: bool = True,
    ) -> None:
        """Build the wrapped client and, when a langmesh key is set, the telemetry path.

        Args:
            api_key: The caller's provider credential.
            config: langmesh settings; defaults to `LangmeshConfig()` (telemetry off).
            chat_client: Pre-built wrapped client; skips session and proxy setup.
            shipper: Pre-built shipper; defaults to one posting to `config.telemetry_url`.
            estimator: Cost estimator; defaults to the built-in price table.
            start_flusher: Whether to start the periodic background flush.
        """

        self.config = config if config is not None else LangmeshConfig()
        self.config.validate()
        self._logger = TelemetryLogger("client")
        self._estimator = estimator if estimator is not None else CostEstimator()
        self._cost_tracker = CostTracker()
        self._close_lock = threading.Lock()
        self._closed = False

        self._owns_chat_client = chat_client is None
        if chat_client is None:
            session, base_url = build_chat_session(
                proxy_active=self.config.proxy_active,
                routing_key=self.config.api_key,
                original_key=api_key,
                proxy_base_url=self.config.proxy_base_url,
                default_base_url=self.config.openai_base_url,
            )
            chat_client = OpenAIChatClient(api_key=api_key, base_url=base_url, session=session)
        self._client = chat_client

        self._telemetry_enabled = self.config.telemetry_enabled
        self._shipper: TelemetryShipper | None = None
        self._buffer: TelemetryBuffer | None = None
        self._flusher: PeriodicFlusher | None = None
        if self._telemetry_enabled:
            self._shipper = shipper if shipper is not None else TelemetryShipper(
                endpoint=self.config.telemetry_url,
                api_key=self.config.api_key or "",
                timeout_seconds=self.config.ship_timeout_seconds,
            )
            self._buffer = TelemetryBuffer(
                self._shipper.submit,
                threshold=self.config.flush_threshold,
            )
            if start_flusher:
                self._flusher = PeriodicFlusher(
                    self._buffer.flush,
                    interval_seconds=self.config.flush_interval_seconds,
                )
                self._flusher.start()

        self._logger.debug(
            "client_ready",
            telemetry=self._telemetry_enabled,
            proxy=self.config.proxy_active,
        )

    @classmethod
    def from_env(cls, api_key: str) -> InstrumentedClient:
        """Build a client configured from `LANGMESH_*` environment variables."""

        return cls(api_key, ConfigLoader.from_env())

    @property
    def telemetry_enabled(self) -> bool:
        return self._telemetry_enabled

    @property
    def proxy_enabled(self) -> bool:
        return self.config.proxy_active

    @property
    def passthrough(self) -> OpenAIChatClient:
        """The wrapped client, for operations that are not instrumented."""

        return self._client

    @property
    def buffer(self) -> TelemetryBuffer | None:
        return self._buffer

    def completion(
        self,
        request: ChatCompletionRequest,
        context: CallContext | None = None,
    ) -> ChatCompletionResponse:
        """Run one chat completion and record its telemetry.

        The wrapped client's response is returned, or its exception re-raised,
        exactly as produced.
        """

        if not self._telemetry_enabled:
            return self._client.create_chat_completion(request, context)

        marker = self._start_marker()
        try:
            response = self._client.create_chat_completion(request, context)
        except BaseException as exc:
            self._record(marker, request, error=exc)
            raise
        self._record(marker, request, response=response)
        return response

    def flush(self) -> list[TelemetryEvent]:
        """Flush buffered events now and return the detached batch."""

        if self._buffer is None:
            return []
        return self._buffer.flush()

    def usage_summary(self) -> dict[str, float]:
        """Return request, token, and cost totals recorded by this client."""

        return self._cost_tracker.summary()

    def close(self, drain: bool = True) -> None:
        """Stop background work and optionally ship pending events first.

        Safe to call more than once.
        """

        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if self._flusher is not None:
            self._flusher.stop(timeout=self.config.flush_interval_seconds)
        if self._buffer is not None:
            if drain:
                self._buffer.flush()
            else:
                self._buffer.drain()
        if self._shipper is not None:
            self._shipper.close(wait=drain, timeout=self.config.ship_timeout_seconds)
        if self._owns_chat_client:
            self._client.close()
        self._logger.debug("client_closed", drained=drain)

    def __enter__(self) -> InstrumentedClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _start_marker(self) -> _CallMarker | None:
        try:
            return _CallMarker(
                request_id=new_request_id(),
                started_at=utc_now(),
                started=time.monotonic(),
            )
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("start_failed", error_type=type(exc).__name__)
            return None

    def _record(
        self,
        marker: _CallMarker | None,
        request: ChatCompletionRequest,
        *,
        response: ChatCompletionResponse | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Build and buffer the event for one call; never raises."""

        try:
            finished = time.monotonic()
            finished_at = utc_now()
            if marker is None:
                marker = _CallMarker(new_request_id(), finished_at, finished)
            event = self._build_event(marker, finished_at, finished, request, response, error)
            self._cost_tracker.add_event(event)
            if self._buffer is not None:
                self._buffer.record(event)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("record_failed", error_type=type(exc).__name__)

    def _build_event(
        self,
        marker: _CallMarker,
        finished_at: datetime,
        finished: float,
        request: ChatCompletionRequest,
        response: ChatCompletionResponse | None,
        error: BaseException | None,
    ) -> TelemetryEvent:
        model = str(getattr(request, "model", "") or "unknown")
        common = {
            "request_id": marker.request_id,
            "started_at": marker.started_at,
            "finished_at": finished_at,
            "model": model,
            "endpoint": CHAT_COMPLETIONS_ENDPOINT,
            "latency_ms": elapsed_ms(marker.started, finished),
        }
        if error is not None:
            return TelemetryEvent(
                **common,
                status=STATUS_ERROR,
                error_class=type(error).__name__,
                error_message=str(error) or type(error).__name__,
            )

        usage = response.usage if response is not None else None
        if usage is None:
            return TelemetryEvent(**common, status=STATUS_SUCCESS)

        token_usage = TokenUsage.from_counts(
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.total_tokens,
        )
        return TelemetryEvent(
            **common,
            token_usage=token_usage,
            cost_estimate_usd=self._estimator.estimate(
                model,
                token_usage.prompt_tokens,
                token_usage.completion_tokens,
            ),
            status=STATUS_SUCCESS,
        )
