"""Shared pytest fixtures for the langmesh test suite."""

from __future__ import annotations

import pytest

from tests.helpers import RecordingShipper


_LANGMESH_ENV_KEYS = (
    "LANGMESH_API_KEY",
    "LANGMESH_TELEMETRY_ENDPOINT",
    "LANGMESH_PROXY_ENABLED",
    "LANGMESH_BASE_URL",
    "OPENAI_BASE_URL",
    "LANGMESH_FLUSH_THRESHOLD",
    "LANGMESH_FLUSH_INTERVAL_SECONDS",
    "LANGMESH_SHIP_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _clear_langmesh_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host `LANGMESH_*` variables from leaking into tests."""

    for key in _LANGMESH_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def recording_shipper() -> RecordingShipper:
    """Provide a shipper double that records submitted batches."""

    return RecordingShipper()
