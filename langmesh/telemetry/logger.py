"""Diagnostic logging for the telemetry path.

Responsibilities:
- Emit concise, deterministic `key=value` lines through `loguru`.
- Stay silent unless the host application enables the `langmesh` logger.
- Never include secret values or event payloads.
"""

from __future__ import annotations

from typing import TextIO

from loguru import logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    if not context:
        return ""
    return " " + " ".join(
        f"{key}={_sanitize_context_value(context[key])}" for key in sorted(context)
    )


def enable_logging(sink: TextIO, level: str = "INFO", *, replace_handlers: bool = False) -> int:
    """Enable `langmesh` log output to `sink` and return the loguru handler id.

    Host applications keep their own loguru handlers by default. Pass
    `replace_handlers=True` to remove every existing handler first, including
    loguru's default stderr handler, so each line is written once.
    """

    logger.enable("langmesh")
    if replace_handlers:
        logger.remove()
    return logger.add(
        sink,
        format="{message}",
        level=level,
        colorize=False,
        filter="langmesh",
    )


class TelemetryLogger:
    """Emit deterministic diagnostic lines for buffer, flush and ship activity."""

    def __init__(self, component: str = "telemetry") -> None:
        self._component = component

    def _emit(self, level: str, event: str, **context: object) -> None:
        line = f"[{self._component}] level={level} event={event}{_format_context(context)}"
        logger.log(level, line)

    def debug(self, event: str, **context: object) -> None:
        self._emit("DEBUG", event, **context)

    def info(self, event: str, **context: object) -> None:
        self._emit("INFO", event, **context)

    def warning(self, event: str, **context: object) -> None:
        self._emit("WARNING", event, **context)
