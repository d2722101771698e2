"""Value normalization helpers shared by config loaders and the CLI."""

from __future__ import annotations


_TRUE_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Return a stripped string, or `None` for missing and blank values."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse `true`/`false`-style tokens, returning `None` when unrecognized."""

    if isinstance(value, bool):
        return value

    token = normalize_optional_string(value)
    if token is None:
        return None
    token = token.lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def parse_positive_number(value: object, field_name: str, *, integer: bool = False) -> float:
    """Parse a strictly positive number from a raw config value.

    Args:
        value: Raw value from YAML, environment, or CLI input.
        field_name: Name used in the validation error message.
        integer: Whether the value must be a whole number.

    Raises:
        ValueError: If the value is not a positive number.
    """

    kind = "integer" if integer else "number"
    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive {kind}.")
    try:
        parsed = int(str(value).strip()) if integer else float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"`{field_name}` must be a positive {kind}.") from exc
    if parsed <= 0:
        raise ValueError(f"`{field_name}` must be a positive {kind}.")
    return parsed
