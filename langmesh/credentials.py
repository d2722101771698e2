"""Secure storage for the langmesh telemetry API key.

Responsibilities:
- Persist the langmesh API key in an OS-backed keyring.
- Provide a fallback source for `ConfigLoader.from_env` when no env key is set.
- Never log or echo secret values.

Key types:
- `CredentialStore`: interface for API key persistence.
- `KeyringCredentialStore`: `keyring`-backed implementation.
- `InMemoryCredentialStore`: process-local implementation for embedding and tests.
"""

from __future__ import annotations

from dataclasses import dataclass

import keyring
from keyring.errors import KeyringError, NoKeyringError, PasswordDeleteError

from .parsing import normalize_optional_string


_DEFAULT_SERVICE_NAME = "langmesh"
_DEFAULT_ACCOUNT_NAME = "langmesh_api_key"


class CredentialStore:
    """Interface for langmesh API key storage."""

    def is_available(self) -> bool:
        """Return whether the backing store can be used."""

        raise NotImplementedError

    def get_api_key(self) -> str | None:
        """Return the stored API key, or `None` when missing."""

        raise NotImplementedError

    def set_api_key(self, api_key: str) -> None:
        """Persist an API key."""

        raise NotImplementedError

    def clear_api_key(self) -> bool:
        """Delete a stored API key and return whether one existed."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Credential store backed by the platform keyring."""

    service_name: str = _DEFAULT_SERVICE_NAME
    account_name: str = _DEFAULT_ACCOUNT_NAME

    def is_available(self) -> bool:
        """Return `False` when keyring resolves to the null/fail backend."""

        try:
            backend = keyring.get_keyring()
        except KeyringError:
            return False
        priority = getattr(backend, "priority", 0)
        return priority > 0

    def get_api_key(self) -> str | None:
        """Read the API key, treating backend errors as a missing key."""

        try:
            value = keyring.get_password(self.service_name, self.account_name)
        except (NoKeyringError, KeyringError):
            return None
        return normalize_optional_string(value)

    def set_api_key(self, api_key: str) -> None:
        """Persist a normalized API key or raise when the value is blank."""

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        keyring.set_password(self.service_name, self.account_name, normalized)

    def clear_api_key(self) -> bool:
        """Remove the stored API key and report whether one was present."""

        if self.get_api_key() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


class InMemoryCredentialStore(CredentialStore):
    """Process-local credential store."""

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = normalize_optional_string(api_key)

    def is_available(self) -> bool:
        return True

    def get_api_key(self) -> str | None:
        return self._api_key

    def set_api_key(self, api_key: str) -> None:
        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        self._api_key = normalized

    def clear_api_key(self) -> bool:
        existed = self._api_key is not None
        self._api_key = None
        return existed


def create_credential_store() -> CredentialStore:
    """Create the default credential store implementation."""

    return KeyringCredentialStore()
