"""Provider access-token storage for the episodevoice CLI.

Responsibilities:
- Keep the Gradio space access token (for example a Hugging Face `hf_...`
  token) in the operating system keyring instead of config files.
- Report whether a usable keyring backend exists before any token operation.

Key types:
- `CredentialStore`: protocol the CLI resolves provider tokens through.
- `KeyringCredentialStore`: `keyring`-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import keyring
from keyring.backends import fail as keyring_fail
from keyring.errors import PasswordDeleteError

from .parsing import normalize_optional_string

KEYRING_SERVICE = "episodevoice"
KEYRING_ACCOUNT = "provider_api_key"


class CredentialStore(Protocol):
    """Provider token operations used by CLI runtime resolution."""

    def is_available(self) -> bool:
        """Return whether tokens can be read and written."""

    def backend_name(self) -> str:
        """Return a short label of the storage backend for status output."""

    def get_api_key(self) -> str | None:
        """Return the stored provider token, if any."""

    def set_api_key(self, api_key: str) -> None:
        """Store the provider token."""

    def clear_api_key(self) -> bool:
        """Forget the provider token and report whether one was stored."""


@dataclass(slots=True)
class KeyringCredentialStore:
    """Provider token kept under one keyring service/account pair."""

    service_name: str = KEYRING_SERVICE
    account_name: str = KEYRING_ACCOUNT

    def _load_keyring_module(self):
        """Return the `keyring` module, or `None` when only the fail backend is active."""

        if isinstance(keyring.get_keyring(), keyring_fail.Keyring):
            return None
        return keyring

    def is_available(self) -> bool:
        return self._load_keyring_module() is not None

    def backend_name(self) -> str:
        if self._load_keyring_module() is None:
            return "none"
        return type(keyring.get_keyring()).__name__

    def get_api_key(self) -> str | None:
        """Return the stored provider token with surrounding whitespace removed."""

        keyring_module = self._load_keyring_module()
        if keyring_module is None:
            return None
        return normalize_optional_string(
            keyring_module.get_password(self.service_name, self.account_name)
        )

    def set_api_key(self, api_key: str) -> None:
        """Store the provider token.

        Raises:
            RuntimeError: If no keyring backend is configured.
            ValueError: If the token is blank.
        """

        keyring_module = self._load_keyring_module()
        if keyring_module is None:
            raise RuntimeError(
                "Cannot store the provider token: no keyring backend is configured. "
                "Pass the token with `--api-key` or `EPISODEVOICE_API_KEY` instead."
            )
        token = normalize_optional_string(api_key)
        if token is None:
            raise ValueError("Provider token must be a non-empty string.")
        keyring_module.set_password(self.service_name, self.account_name, token)

    def clear_api_key(self) -> bool:
        keyring_module = self._load_keyring_module()
        if keyring_module is None or self.get_api_key() is None:
            return False
        try:
            keyring_module.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    """Return the keyring-backed provider token store."""

    return KeyringCredentialStore()
