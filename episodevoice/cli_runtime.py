"""CLI provider runtime resolution helpers.

This module isolates runtime source assembly, hidden API-key prompting, and
secure API-key persistence from the command wiring layer.
"""

from __future__ import annotations

from typing import Callable

import typer

from .credentials import CredentialStore, create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string


def _set_runtime_cli_value(
    runtime_cli_values: dict[str, str],
    key: str,
    value: str | None,
) -> None:
    """Set a normalized runtime CLI value when user input is present."""

    normalized = normalize_optional_string(value)
    if normalized is not None:
        runtime_cli_values[key] = normalized


def prompt_hidden_api_key(label: str = "Provider API key (hidden; leave blank to skip)") -> str | None:
    """Prompt for an API key without echoing it and normalize blank input to `None`."""

    return normalize_optional_string(
        typer.prompt(label, default="", hide_input=True, show_default=False)
    )


def resolve_provider_runtime_sources(
    provider_base_url: str | None,
    voice_style: str | None,
    voice_sample_url: str | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
    credential_store_factory: Callable[[], CredentialStore] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for provider configuration."""

    runtime_cli_values: dict[str, str] = {}
    _set_runtime_cli_value(runtime_cli_values, "provider_base_url", provider_base_url)
    _set_runtime_cli_value(runtime_cli_values, "voice_style", voice_style)
    _set_runtime_cli_value(runtime_cli_values, "voice_sample_url", voice_sample_url)
    _set_runtime_cli_value(runtime_cli_values, "api_key", api_key)

    api_key_entered_in_run = "api_key" in runtime_cli_values
    if prompt_api_key and "api_key" not in runtime_cli_values:
        prompted_api_key = prompt_hidden_api_key()
        if prompted_api_key is not None:
            runtime_cli_values["api_key"] = prompted_api_key
            api_key_entered_in_run = True

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_api_key = credential_store.get_api_key()
    if stored_api_key is not None:
        runtime_secure_values["api_key"] = stored_api_key

    if api_key_entered_in_run and store_api_key:
        try:
            credential_store.set_api_key(runtime_cli_values["api_key"])
            typer.echo("Stored API key in secure credential storage.")
        except Exception as exc:
            raise PipelineStageError(
                stage="credentials",
                detail=f"Failed to store API key securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-api-key` for one-off usage."
                ),
            ) from exc

    return runtime_cli_values, runtime_secure_values
