"""Configuration model and loaders for langmesh.

Responsibilities:
- Define client configuration as an explicit, immutable dataclass.
- Load configuration once from environment variables or a YAML file.
- Fall back to secure credential storage for the langmesh API key.

Key types:
- `LangmeshConfig`: settings injected into `InstrumentedClient`.
- `ConfigLoader`: static construction helpers for `LangmeshConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .credentials import CredentialStore
from .parsing import normalize_optional_string, parse_permissive_boolean, parse_positive_number
from .telemetry.logger import TelemetryLogger


DEFAULT_TELEMETRY_URL = "https://api.langmesh.ai/v1/telemetry"
DEFAULT_PROXY_BASE_URL = "https://api.langmesh.ai/v1/openai"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_FLUSH_THRESHOLD = 10
DEFAULT_FLUSH_INTERVAL_SECONDS = 5.0
DEFAULT_SHIP_TIMEOUT_SECONDS = 5.0

_LOGGER = TelemetryLogger("config")


@dataclass(frozen=True, slots=True)
class LangmeshConfig:
    """Settings for one instrumented client.

    Attributes:
        api_key: langmesh API key; telemetry is enabled only when present.
        telemetry_url: Collection endpoint receiving event batches.
        proxy_enabled: Whether chat traffic is routed through the langmesh proxy.
        proxy_base_url: Base URL used in place of the OpenAI API when proxying.
        openai_base_url: Default OpenAI-compatible base URL.
        flush_threshold: Buffered event count that triggers an automatic flush.
        flush_interval_seconds: Period of the background flush trigger.
        ship_timeout_seconds: Client-side timeout for one telemetry POST.
    """

    api_key: str | None = None
    telemetry_url: str = DEFAULT_TELEMETRY_URL
    proxy_enabled: bool = False
    proxy_base_url: str = DEFAULT_PROXY_BASE_URL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    flush_threshold: int = DEFAULT_FLUSH_THRESHOLD
    flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS
    ship_timeout_seconds: float = DEFAULT_SHIP_TIMEOUT_SECONDS

    @property
    def telemetry_enabled(self) -> bool:
        """Return whether a non-blank langmesh API key is configured."""

        return normalize_optional_string(self.api_key) is not None

    @property
    def proxy_active(self) -> bool:
        """Return whether proxy routing applies (flag set and key configured)."""

        return self.proxy_enabled and self.telemetry_enabled

    def validate(self) -> None:
        """Validate configuration values before a client is built."""

        for field_name in ("telemetry_url", "proxy_base_url", "openai_base_url"):
            if normalize_optional_string(getattr(self, field_name)) is None:
                raise ValueError(f"`{field_name}` must be a non-empty URL.")
        if isinstance(self.flush_threshold, bool) or self.flush_threshold <= 0:
            raise ValueError("`flush_threshold` must be a positive integer.")
        if self.flush_interval_seconds <= 0:
            raise ValueError("`flush_interval_seconds` must be a positive number.")
        if self.ship_timeout_seconds <= 0:
            raise ValueError("`ship_timeout_seconds` must be a positive number.")

    def as_display_metadata(self) -> dict[str, str]:
        """Return non-secret settings safe to print or log."""

        return {
            "api_key": "present" if self.telemetry_enabled else "not set",
            "telemetry_enabled": "true" if self.telemetry_enabled else "false",
            "telemetry_url": self.telemetry_url,
            "proxy_enabled": "true" if self.proxy_enabled else "false",
            "proxy_base_url": self.proxy_base_url,
            "openai_base_url": self.openai_base_url,
            "flush_threshold": str(self.flush_threshold),
            "flush_interval_seconds": f"{self.flush_interval_seconds:g}",
            "ship_timeout_seconds": f"{self.ship_timeout_seconds:g}",
        }


class ConfigLoader:
    """Factory methods for creating `LangmeshConfig` from external sources."""

    _ENV_KEYS = {
        "api_key": "LANGMESH_API_KEY",
        "telemetry_url": "LANGMESH_TELEMETRY_ENDPOINT",
        "proxy_enabled": "LANGMESH_PROXY_ENABLED",
        "proxy_base_url": "LANGMESH_BASE_URL",
        "openai_base_url": "OPENAI_BASE_URL",
        "flush_threshold": "LANGMESH_FLUSH_THRESHOLD",
        "flush_interval_seconds": "LANGMESH_FLUSH_INTERVAL_SECONDS",
        "ship_timeout_seconds": "LANGMESH_SHIP_TIMEOUT_SECONDS",
    }
    _SUPPORTED_YAML_KEYS = frozenset(_ENV_KEYS)

    @staticmethod
    def from_env(
        env: Mapping[str, str] | None = None,
        credential_store: CredentialStore | None = None,
    ) -> LangmeshConfig:
        """Create a validated config from environment variables.

        The API key falls back to `credential_store` when the environment
        does not provide one.
        """

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for field_name, env_key in ConfigLoader._ENV_KEYS.items():
            if env_key not in env_map:
                continue
            value = normalize_optional_string(env_map.get(env_key))
            if value is not None:
                payload[field_name] = value

        if "api_key" not in payload and credential_store is not None:
            stored_key = credential_store.get_api_key()
            if stored_key is not None:
                payload["api_key"] = stored_key

        return ConfigLoader._build_config(payload, source_label="Environment", strict_flags=False)

    @staticmethod
    def from_yaml(path: Path) -> LangmeshConfig:
        """Create a validated config from a YAML file."""

        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping.")

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(
                f"YAML config `{path}` includes unsupported key(s): {', '.join(unknown)}."
            )
        return ConfigLoader._build_config(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def _build_config(
        payload: Mapping[str, Any],
        source_label: str,
        *,
        strict_flags: bool = True,
    ) -> LangmeshConfig:
        """Build and validate a config from a normalized field mapping.

        With `strict_flags` false, an unrecognized `proxy_enabled` value is
        logged and treated as disabled instead of raising.
        """

        kwargs: dict[str, Any] = {}
        for key in ("api_key", "telemetry_url", "proxy_base_url", "openai_base_url"):
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                kwargs[key] = value

        if "proxy_enabled" in payload:
            parsed = parse_permissive_boolean(payload["proxy_enabled"])
            if parsed is None and not strict_flags:
                _LOGGER.warning("invalid_flag", source=source_label, field="proxy_enabled")
                parsed = False
            if parsed is None:
                raise ValueError(
                    f"{source_label} field `proxy_enabled` must be a boolean value "
                    "(`true`/`false`, `1`/`0`, `yes`/`no`)."
                )
            kwargs["proxy_enabled"] = parsed

        if payload.get("flush_threshold") is not None:
            kwargs["flush_threshold"] = int(
                parse_positive_number(payload["flush_threshold"], "flush_threshold", integer=True)
            )
        for key in ("flush_interval_seconds", "ship_timeout_seconds"):
            if payload.get(key) is not None:
                kwargs[key] = float(parse_positive_number(payload[key], key))

        config = LangmeshConfig(**kwargs)
        config.validate()
        return config
