"""Domain exceptions for CLI diagnostics."""

from __future__ import annotations


class CommandError(RuntimeError):
    """Raised when a CLI command fails at a named stage."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
