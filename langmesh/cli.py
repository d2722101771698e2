"""Command-line interface for langmesh.

Responsibilities:
- Show the resolved client configuration without secrets.
- Manage the keyring-stored langmesh API key.
- Send one synthetic telemetry event to verify endpoint connectivity.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Annotated, NoReturn

import typer

from .config import ConfigLoader, LangmeshConfig
from .credentials import create_credential_store
from .errors import CommandError
from .parsing import normalize_optional_string
from .telemetry.events import STATUS_SUCCESS, TelemetryEvent, new_request_id, utc_now
from .telemetry.logger import enable_logging
from .telemetry.shipper import TelemetryShipper

app = typer.Typer(
    name="langmesh",
    no_args_is_help=True,
    help="langmesh telemetry CLI.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to a YAML config file."),
]


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, CommandError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _load_config(config_path: Path | None) -> LangmeshConfig:
    """Load config from YAML when given, otherwise from the environment."""

    if config_path is None:
        try:
            return ConfigLoader.from_env(credential_store=create_credential_store())
        except ValueError as exc:
            raise CommandError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Check `LANGMESH_*` environment variables.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise CommandError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise CommandError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


@app.command("config")
def config_command(config_file: ConfigOption = None) -> None:
    """Print the resolved configuration with secrets masked."""

    try:
        config = _load_config(config_file)
    except Exception as exc:
        exit_with_command_error("config", exc)

    for key, value in config.as_display_metadata().items():
        typer.echo(f"{key}: {value}")


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option("--set-api-key", help="Prompt for the langmesh API key and store it."),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option("--clear-api-key", help="Remove the stored langmesh API key."),
    ] = False,
) -> None:
    """Manage the securely stored langmesh API key."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            CommandError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "langmesh API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                CommandError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                CommandError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        if credential_store.clear_api_key():
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored langmesh API key: {status}")


@app.command("ping")
def ping_command(
    config_file: ConfigOption = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Print telemetry diagnostics to stderr."),
    ] = False,
) -> None:
    """Ship one synthetic event to the telemetry endpoint and report the outcome."""

    if verbose:
        enable_logging(sys.stderr, level="DEBUG", replace_handlers=True)

    try:
        config = _load_config(config_file)
        if not config.telemetry_enabled:
            raise CommandError(
                stage="config",
                detail="No langmesh API key configured; telemetry is disabled.",
                hint="Set `LANGMESH_API_KEY` or run `langmesh credentials --set-api-key`.",
            )
    except Exception as exc:
        exit_with_command_error("ping", exc)

    now = utc_now()
    event = TelemetryEvent(
        request_id=new_request_id(),
        started_at=now,
        finished_at=now,
        model="langmesh-ping",
        status=STATUS_SUCCESS,
    )
    shipper = TelemetryShipper(
        endpoint=config.telemetry_url,
        api_key=config.api_key or "",
        timeout_seconds=config.ship_timeout_seconds,
    )
    try:
        result = shipper.ship([event])
    finally:
        shipper.close()

    if not result.delivered:
        status = result.status_code if result.status_code is not None else "none"
        exit_with_command_error(
            "ping",
            CommandError(
                stage="ship",
                detail=f"Telemetry endpoint rejected or unreachable "
                f"(failure_kind={result.failure_kind}, status={status}).",
                hint=f"Verify `{config.telemetry_url}` is reachable and the API key is valid.",
            ),
        )
    typer.echo(f"Telemetry endpoint: {config.telemetry_url}")
    typer.echo(f"Delivered events: {result.event_count} (HTTP {result.status_code})")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
