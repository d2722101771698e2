"""Best-effort delivery of telemetry batches to the collection endpoint.

Responsibilities:
- Serialize a batch as `{"events": [...]}` and POST it with bearer auth.
- Run deliveries on daemon worker threads so flushes never block callers and
  queued telemetry never holds the interpreter open at exit.
- Bound the number of pending batches; overflow is dropped and logged.
- Absorb every failure into a `ShipResult`; nothing is raised or retried.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
import json
import queue
import threading
import time
from typing import Sequence

import requests

from .events import TelemetryEvent
from .logger import TelemetryLogger


_STOP = object()


@dataclass(frozen=True, slots=True)
class ShipResult:
    """Outcome of one delivery attempt, reported only to diagnostics.

    Attributes:
        delivered: Whether the endpoint accepted the batch with a 2xx status.
        event_count: Number of events in the batch.
        status_code: HTTP status when a response was received.
        failure_kind: `serialization`, `timeout`, `transport`, `http_error`, or
            `unknown` when not delivered.
    """

    delivered: bool
    event_count: int
    status_code: int | None = None
    failure_kind: str | None = None


class TelemetryShipper:
    """POST event batches to the telemetry endpoint without surfacing errors."""

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        session: requests.Session | None = None,
        max_workers: int = 2,
        max_pending_batches: int = 32,
        run_logger: TelemetryLogger | None = None,
    ) -> None:
        """Create a shipper; worker threads start on the first submitted batch.

        Args:
            endpoint: Collection endpoint URL.
            api_key: langmesh API key sent as a bearer token.
            timeout_seconds: Client-side timeout for one POST.
            session: HTTP session; defaults to a new `requests.Session`.
            max_workers: Number of daemon delivery threads.
            max_pending_batches: Queued plus in-flight batches allowed before
                new batches are dropped.
            run_logger: Diagnostic logger.
        """

        if max_workers <= 0:
            raise ValueError("`max_workers` must be a positive integer.")
        if max_pending_batches <= 0:
            raise ValueError("`max_pending_batches` must be a positive integer.")
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key
        self._session = session if session is not None else requests.Session()
        self._max_workers = max_workers
        self._slots = threading.BoundedSemaphore(max_pending_batches)
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._workers: list[threading.Thread] = []
        self._logger = run_logger if run_logger is not None else TelemetryLogger("shipper")
        self._closed = False
        self._state_lock = threading.Lock()

    def submit(self, batch: Sequence[TelemetryEvent]) -> Future[ShipResult] | None:
        """Schedule `batch` for delivery and return immediately.

        Returns `None` when the batch is empty, the shipper is closed, or the
        pending-batch limit is reached.
        """

        if not batch:
            return None
        with self._state_lock:
            if self._closed:
                self._logger.debug("dropped", reason="closed", events=len(batch))
                return None
            if not self._slots.acquire(blocking=False):
                self._logger.warning("dropped", reason="queue_full", events=len(batch))
                return None
            self._start_workers()
            future: Future[ShipResult] = Future()
            self._queue.put((list(batch), future))
        return future

    def ship(self, batch: Sequence[TelemetryEvent]) -> ShipResult:
        """Deliver `batch` synchronously; every failure becomes a `ShipResult`."""

        event_count = len(batch)
        try:
            body = json.dumps({"events": [event.to_dict() for event in batch]})
        except (AttributeError, TypeError, ValueError):
            return self._failed(event_count, "serialization")

        try:
            response = self._session.post(
                self.endpoint,
                data=body.encode("utf-8"),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                timeout=self.timeout_seconds,
            )
        except requests.Timeout:
            return self._failed(event_count, "timeout")
        except requests.RequestException:
            return self._failed(event_count, "transport")
        except Exception:  # noqa: BLE001
            return self._failed(event_count, "unknown")

        status_code = response.status_code
        response.close()
        if not 200 <= status_code < 300:
            return self._failed(event_count, "http_error", status_code=status_code)

        self._logger.debug("shipped", events=event_count, status=status_code)
        return ShipResult(delivered=True, event_count=event_count, status_code=status_code)

    def close(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting batches and shut the workers down.

        Args:
            wait: Deliver already queued batches before the workers exit.
                When false, queued batches are cancelled.
            timeout: Upper bound in seconds on waiting for the workers.
        """

        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            workers = list(self._workers)

        if not wait:
            self._cancel_pending()
        for _ in workers:
            self._queue.put(_STOP)
        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            for worker in workers:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                worker.join(remaining)
        self._session.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _start_workers(self) -> None:
        if self._workers:
            return
        for index in range(self._max_workers):
            worker = threading.Thread(
                target=self._work,
                name=f"langmesh-shipper-{index}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            batch, future = item
            running = future.set_running_or_notify_cancel()
            try:
                result = self.ship(batch) if running else None
            except Exception as exc:  # noqa: BLE001
                self._slots.release()
                future.set_exception(exc)
                continue
            # The slot is free before the result is visible to waiters.
            self._slots.release()
            if result is not None:
                future.set_result(result)

    def _cancel_pending(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            batch, future = item
            future.cancel()
            self._slots.release()
            self._logger.debug("dropped", reason="closed", events=len(batch))

    def _failed(
        self,
        event_count: int,
        failure_kind: str,
        *,
        status_code: int | None = None,
    ) -> ShipResult:
        self._logger.warning(
            "ship_failed",
            events=event_count,
            failure_kind=failure_kind,
            status=status_code if status_code is not None else "none",
        )
        return ShipResult(
            delivered=False,
            event_count=event_count,
            status_code=status_code,
            failure_kind=failure_kind,
        )
