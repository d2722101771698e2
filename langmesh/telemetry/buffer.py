"""Thread-safe telemetry buffering with size and time flush triggers.

Responsibilities:
- Accumulate events under a single lock held only for in-memory mutation.
- Detach the pending batch atomically and hand it to a dispatch callable.
- Flush on a size threshold and on a periodic background schedule.

Ordering: events drain in record order and every shipped batch is a disjoint
slice of the recorded sequence.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Sequence

from .events import TelemetryEvent
from .logger import TelemetryLogger


Dispatch = Callable[[Sequence[TelemetryEvent]], Any]


class TelemetryBuffer:
    """Pending telemetry events owned by one instrumented client."""

    def __init__(
        self,
        dispatch: Dispatch,
        *,
        threshold: int = 10,
        run_logger: TelemetryLogger | None = None,
    ) -> None:
        if threshold <= 0:
            raise ValueError("`threshold` must be a positive integer.")
        self._dispatch = dispatch
        self._threshold = threshold
        self._lock = threading.Lock()
        self._events: list[TelemetryEvent] = []
        self._logger = run_logger if run_logger is not None else TelemetryLogger("buffer")

    @property
    def threshold(self) -> int:
        return self._threshold

    def record(self, event: TelemetryEvent) -> bool:
        """Append `event` and flush when the threshold is reached.

        Returns:
            Whether this call triggered a flush.
        """

        with self._lock:
            self._events.append(event)
            should_flush = len(self._events) >= self._threshold
        if should_flush:
            self.flush()
        return should_flush

    def flush(self) -> list[TelemetryEvent]:
        """Detach pending events and dispatch them; no-op when empty.

        Returns:
            The detached batch, empty when nothing was pending.
        """

        batch = self.drain()
        if not batch:
            return batch
        try:
            self._dispatch(batch)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "dispatch_failed",
                events=len(batch),
                error_type=type(exc).__name__,
            )
        return batch

    def drain(self) -> list[TelemetryEvent]:
        """Detach and return pending events without dispatching them."""

        with self._lock:
            if not self._events:
                return []
            batch = self._events
            self._events = []
        return batch

    def pending_count(self) -> int:
        with self._lock:
            return len(self._events)


class PeriodicFlusher:
    """Background thread calling `flush` at a fixed interval until stopped."""

    def __init__(
        self,
        flush: Callable[[], object],
        *,
        interval_seconds: float = 5.0,
        name: str = "langmesh-flusher",
        run_logger: TelemetryLogger | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("`interval_seconds` must be a positive number.")
        self._flush = flush
        self._interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._logger = run_logger if run_logger is not None else TelemetryLogger("flusher")
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Signal the thread to exit and wait up to `timeout` seconds."""

        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_seconds):
            try:
                self._flush()
            except Exception as exc:  # noqa: BLE001
                self._logger.warning("periodic_flush_failed", error_type=type(exc).__name__)
