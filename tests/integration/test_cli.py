"""Integration tests for the langmesh CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

from pytest import MonkeyPatch
from typer.testing import CliRunner

from langmesh import cli
from langmesh.cli import app
from langmesh.credentials import InMemoryCredentialStore
from langmesh.telemetry.events import TelemetryEvent
from langmesh.telemetry.shipper import ShipResult, TelemetryShipper


def _use_store(monkeypatch: MonkeyPatch, store: InMemoryCredentialStore) -> None:
    monkeypatch.setattr(cli, "create_credential_store", lambda: store)


def _fake_ship(
    shipped: list[tuple[str, str, list[TelemetryEvent]]],
    result: ShipResult | None = None,
) -> Callable[[TelemetryShipper, Sequence[TelemetryEvent]], ShipResult]:
    def _ship(self: TelemetryShipper, batch: Sequence[TelemetryEvent]) -> ShipResult:
        shipped.append((self.endpoint, self._api_key, list(batch)))
        if result is not None:
            return result
        return ShipResult(delivered=True, event_count=len(batch), status_code=202)

    return _ship


def test_config_command_masks_api_key(monkeypatch: MonkeyPatch) -> None:
    _use_store(monkeypatch, InMemoryCredentialStore())
    monkeypatch.setenv("LANGMESH_API_KEY", "lm-secret")
    monkeypatch.setenv("LANGMESH_PROXY_ENABLED", "true")

    result = CliRunner().invoke(app, ["config"])

    assert result.exit_code == 0, result.output
    assert "api_key: present" in result.output
    assert "proxy_enabled: true" in result.output
    assert "lm-secret" not in result.output


def test_config_command_reads_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "langmesh.yml"
    config_path.write_text("telemetry_url: https://collector.test/v1/telemetry\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["config", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "api_key: not set" in result.output
    assert "telemetry_url: https://collector.test/v1/telemetry" in result.output


def test_config_command_reports_missing_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["config", "--config", str(tmp_path / "missing.yml")])

    assert result.exit_code == 1
    assert "config failed at stage `config`" in result.output
    assert "Config file not found" in result.output


def test_config_command_reports_invalid_environment(monkeypatch: MonkeyPatch) -> None:
    _use_store(monkeypatch, InMemoryCredentialStore())
    monkeypatch.setenv("LANGMESH_FLUSH_THRESHOLD", "zero")

    result = CliRunner().invoke(app, ["config"])

    assert result.exit_code == 1
    assert "Invalid environment configuration" in result.output
    assert "LANGMESH_*" in result.output


def test_credentials_set_status_and_clear(monkeypatch: MonkeyPatch) -> None:
    """Credentials command should store, report, and clear the key without echoing it."""

    store = InMemoryCredentialStore()
    _use_store(monkeypatch, store)
    runner = CliRunner()

    stored = runner.invoke(app, ["credentials", "--set-api-key"], input="lm-stored\n")
    assert stored.exit_code == 0, stored.output
    assert "API key stored" in stored.output
    assert "lm-stored" not in stored.output
    assert store.get_api_key() == "lm-stored"

    status = runner.invoke(app, ["credentials"])
    assert status.exit_code == 0, status.output
    assert "Secure credential storage: available" in status.output
    assert "Stored langmesh API key: present" in status.output

    cleared = runner.invoke(app, ["credentials", "--clear-api-key"])
    assert cleared.exit_code == 0, cleared.output
    assert "Stored API key cleared" in cleared.output

    again = runner.invoke(app, ["credentials", "--clear-api-key"])
    assert "No stored API key found" in again.output
    assert store.get_api_key() is None


def test_credentials_rejects_conflicting_flags(monkeypatch: MonkeyPatch) -> None:
    _use_store(monkeypatch, InMemoryCredentialStore())

    result = CliRunner().invoke(app, ["credentials", "--set-api-key", "--clear-api-key"])

    assert result.exit_code == 1
    assert "cannot be used together" in result.output


def test_credentials_rejects_blank_prompt(monkeypatch: MonkeyPatch) -> None:
    _use_store(monkeypatch, InMemoryCredentialStore())

    result = CliRunner().invoke(app, ["credentials", "--set-api-key"], input="   \n")

    assert result.exit_code == 1
    assert "No API key entered" in result.output


def test_ping_ships_one_event_with_stored_key(monkeypatch: MonkeyPatch) -> None:
    shipped: list[tuple[str, str, list[TelemetryEvent]]] = []
    _use_store(monkeypatch, InMemoryCredentialStore("lm-stored"))
    monkeypatch.setenv("LANGMESH_TELEMETRY_ENDPOINT", "https://collector.test/v1/telemetry")
    monkeypatch.setattr(TelemetryShipper, "ship", _fake_ship(shipped))

    result = CliRunner().invoke(app, ["ping"])

    assert result.exit_code == 0, result.output
    assert "Telemetry endpoint: https://collector.test/v1/telemetry" in result.output
    assert "Delivered events: 1 (HTTP 202)" in result.output
    [(endpoint, api_key, batch)] = shipped
    assert endpoint == "https://collector.test/v1/telemetry"
    assert api_key == "lm-stored"
    assert batch[0].model == "langmesh-ping"
    assert batch[0].status == "success"


def test_ping_fails_without_api_key(monkeypatch: MonkeyPatch) -> None:
    shipped: list[tuple[str, str, list[TelemetryEvent]]] = []
    _use_store(monkeypatch, InMemoryCredentialStore())
    monkeypatch.setattr(TelemetryShipper, "ship", _fake_ship(shipped))

    result = CliRunner().invoke(app, ["ping"])

    assert result.exit_code == 1
    assert "telemetry is disabled" in result.output
    assert shipped == []


def test_ping_reports_undelivered_batch(monkeypatch: MonkeyPatch) -> None:
    shipped: list[tuple[str, str, list[TelemetryEvent]]] = []
    _use_store(monkeypatch, InMemoryCredentialStore())
    monkeypatch.setenv("LANGMESH_API_KEY", "lm-env")
    failure = ShipResult(delivered=False, event_count=1, status_code=401, failure_kind="http_error")
    monkeypatch.setattr(TelemetryShipper, "ship", _fake_ship(shipped, failure))

    result = CliRunner().invoke(app, ["ping"])

    assert result.exit_code == 1
    assert "ping failed at stage `ship`" in result.output
    assert "failure_kind=http_error, status=401" in result.output
    assert "lm-env" not in result.output


def test_ping_verbose_replaces_default_log_handlers(monkeypatch: MonkeyPatch) -> None:
    """Verbose ping should route diagnostics to stderr once, without the default handler."""

    shipped: list[tuple[str, str, list[TelemetryEvent]]] = []
    calls: list[dict[str, object]] = []
    _use_store(monkeypatch, InMemoryCredentialStore("lm-stored"))
    monkeypatch.setattr(TelemetryShipper, "ship", _fake_ship(shipped))
    monkeypatch.setattr(
        cli,
        "enable_logging",
        lambda sink, level="INFO", **kwargs: calls.append({"level": level, **kwargs}) or 1,
    )

    result = CliRunner().invoke(app, ["ping", "--verbose"])

    assert result.exit_code == 0, result.output
    assert calls == [{"level": "DEBUG", "replace_handlers": True}]
    assert len(shipped) == 1
