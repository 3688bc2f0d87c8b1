"""Configuration model and loaders for episodevoice.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for provider runtime settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `EpisodeVoiceConfig`: normalized settings for chunking, provider, polling, and storage.
- `ProviderRuntimeConfig`: resolved provider endpoint, voice, and credential values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `EpisodeVoiceConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_optional_float,
    parse_optional_int,
    parse_permissive_boolean,
)
from .text.chunking import ChunkingOptions
from .tts.sse_client import DEFAULT_API_NAME, DEFAULT_BASE_URL
from .tts.styles import resolve_style

_DEFAULT_VOICE_STYLE = "news-anchor"
_ENV_PREFIX = "EPISODEVOICE_"


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved provider settings for one command invocation.

    Attributes:
        base_url: Root URL of the Gradio provider.
        api_name: Gradio endpoint name.
        voice_style: Registered voice style name.
        voice_sample_url: Optional override of the style's voice sample.
        api_key: Optional bearer token (never persisted in job records).
    """

    base_url: str
    api_name: str
    voice_style: str
    voice_sample_url: str | None = None
    api_key: str | None = None

    def as_metadata(self) -> dict[str, str]:
        """Return non-secret runtime values safe to print or persist."""

        return {
            "provider_base_url": self.base_url,
            "provider_api_name": self.api_name,
            "voice_style": self.voice_style,
            "voice_sample_url": self.voice_sample_url or "",
        }


@dataclass(slots=True)
class EpisodeVoiceConfig:
    """Runtime configuration for episode audio generation.

    Attributes:
        output_dir: Directory holding the job store and stored audio.
        provider_base_url: Root URL of the Gradio TTS provider.
        provider_api_name: Gradio endpoint name used for submission and polling.
        request_timeout_seconds: Per-request HTTP timeout.
        voice_style: Default voice style name.
        voice_sample_url: Optional override of the style's voice sample.
        api_key: Optional bearer token for private providers.
        storage_base_url: Optional public URL prefix of stored audio.
        chunk_threshold_chars: Text length above which submissions are chunked;
            `None` disables chunking.
        max_words_per_chunk: Chunk word limit, overlap included.
        max_chars_per_chunk: Chunk character limit.
        overlap_words: Words repeated at the start of each following chunk.
        prefer_sentence_breaks: Close chunks at sentence punctuation.
        poll_max_attempts: Attempt bound of the caller-side poll loop.
        poll_interval_seconds: Fixed delay between poll attempts.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    output_dir: Path
    provider_base_url: str = DEFAULT_BASE_URL
    provider_api_name: str = DEFAULT_API_NAME
    request_timeout_seconds: int = 120
    voice_style: str = _DEFAULT_VOICE_STYLE
    voice_sample_url: str | None = None
    api_key: str | None = None
    storage_base_url: str | None = None
    chunk_threshold_chars: int | None = 800
    max_words_per_chunk: int = 100
    max_chars_per_chunk: int = 800
    overlap_words: int = 5
    prefer_sentence_breaks: bool = True
    poll_max_attempts: int = 20
    poll_interval_seconds: float = 15.0
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    @property
    def jobs_path(self) -> Path:
        return self.output_dir / "jobs.json"

    @property
    def storage_root(self) -> Path:
        return self.output_dir / "storage"

    def chunking_options(self) -> ChunkingOptions:
        """Return chunker limits derived from this config."""

        return ChunkingOptions(
            max_words_per_chunk=self.max_words_per_chunk,
            max_chars_per_chunk=self.max_chars_per_chunk,
            prefer_sentence_breaks=self.prefer_sentence_breaks,
            overlap_words=self.overlap_words,
        )

    def validate(self) -> None:
        """Validate configuration values before any provider call."""

        self._require_http_url(self.provider_base_url, "provider_base_url")
        self._require_non_empty(self.provider_api_name, "provider_api_name")
        resolve_style(self.voice_style)
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be a positive integer.")
        if self.chunk_threshold_chars is not None and self.chunk_threshold_chars <= 0:
            raise ValueError("`chunk_threshold_chars` must be a positive integer when set.")
        if self.max_words_per_chunk <= 0:
            raise ValueError("`max_words_per_chunk` must be a positive integer.")
        if self.max_chars_per_chunk <= 0:
            raise ValueError("`max_chars_per_chunk` must be a positive integer.")
        if self.overlap_words < 0:
            raise ValueError("`overlap_words` must be zero or a positive integer.")
        if self.overlap_words >= self.max_words_per_chunk:
            raise ValueError("`overlap_words` must be smaller than `max_words_per_chunk`.")
        if self.poll_max_attempts <= 0:
            raise ValueError("`poll_max_attempts` must be a positive integer.")
        if self.poll_interval_seconds < 0:
            raise ValueError("`poll_interval_seconds` must not be negative.")

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        resolved = ProviderRuntimeConfig(
            base_url=self._resolve_runtime_value(
                key="provider_base_url",
                default_value=self.provider_base_url,
                sources=resolved_sources,
            ),
            api_name=self._resolve_runtime_value(
                key="provider_api_name",
                default_value=self.provider_api_name,
                sources=resolved_sources,
            ),
            voice_style=self._resolve_runtime_value(
                key="voice_style",
                default_value=self.voice_style,
                sources=resolved_sources,
            ),
            voice_sample_url=self._resolve_optional_runtime_value(
                key="voice_sample_url",
                default_value=self.voice_sample_url,
                sources=resolved_sources,
            ),
            api_key=self._resolve_optional_runtime_value(
                key="api_key",
                default_value=self.api_key,
                sources=resolved_sources,
            ),
        )
        self._require_http_url(resolved.base_url, "provider_base_url")
        resolve_style(resolved.voice_style)
        return resolved

    def _resolve_runtime_value(
        self,
        key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a required runtime value from sources in precedence order."""

        value = self._resolve_optional_runtime_value(key, default_value, sources)
        if value is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return value

    def _resolve_optional_runtime_value(
        self,
        key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in precedence order."""

        cli_value = self._normalized_lookup(sources.cli, key)
        if cli_value is not None:
            return cli_value

        secure_value = self._normalized_lookup(sources.secure, key)
        if secure_value is not None:
            return secure_value

        env_value = self._normalized_lookup(sources.env, env_key_for(key))
        if env_value is not None:
            return env_value

        return normalize_optional_string(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")

    @staticmethod
    def _require_http_url(value: str, field_name: str) -> None:
        if not isinstance(value, str) or not value.startswith(("http://", "https://")):
            raise ValueError(f"`{field_name}` must be an http(s) URL.")


def env_key_for(field_name: str) -> str:
    """Return the environment variable name of a config field."""

    return f"{_ENV_PREFIX}{field_name.upper()}"


class ConfigLoader:
    """Factory methods for creating `EpisodeVoiceConfig` from external sources."""

    _REQUIRED_YAML_KEYS = frozenset({"output_dir"})
    _STRING_KEYS = (
        "provider_base_url",
        "provider_api_name",
        "voice_style",
        "voice_sample_url",
        "api_key",
        "storage_base_url",
    )
    _POSITIVE_INT_KEYS = (
        "request_timeout_seconds",
        "max_words_per_chunk",
        "max_chars_per_chunk",
        "poll_max_attempts",
    )
    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "output_dir",
            *_STRING_KEYS,
            *_POSITIVE_INT_KEYS,
            "chunk_threshold_chars",
            "overlap_words",
            "prefer_sentence_breaks",
            "poll_interval_seconds",
            "extra",
        }
    )
    _RUNTIME_KEYS = (
        "provider_base_url",
        "provider_api_name",
        "voice_style",
        "voice_sample_url",
        "api_key",
    )

    @staticmethod
    def from_yaml(path: Path) -> EpisodeVoiceConfig:
        """Create a validated config from a YAML file."""

        payload = ConfigLoader._parse_yaml_payload(path.read_text(encoding="utf-8"), path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> EpisodeVoiceConfig:
        """Create a validated config from `EPISODEVOICE_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS - {"extra"}:
            env_key = env_key_for(key)
            if env_key in env_map and normalize_optional_string(env_map[env_key]) is not None:
                payload[key] = env_map[env_key]
        payload.setdefault("output_dir", "out")

        runtime_env = {
            env_key_for(key): env_map[env_key_for(key)]
            for key in ConfigLoader._RUNTIME_KEYS
            if normalize_optional_string(env_map.get(env_key_for(key))) is not None
        }
        config = ConfigLoader._build_config_from_mapping(payload, source_label="Environment")
        config.runtime_sources = RuntimeConfigSources(env=runtime_env)
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` is not valid YAML: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> EpisodeVoiceConfig:
        """Build a validated config from a normalized mapping payload."""

        ConfigLoader._validate_keys(payload, source_label)

        output_dir = normalize_optional_string(payload["output_dir"])
        if output_dir is None:
            raise ValueError(f"{source_label} requires non-empty `output_dir`.")

        values: dict[str, Any] = {"output_dir": Path(output_dir)}
        for key in ConfigLoader._STRING_KEYS:
            value = normalize_optional_string(payload.get(key))
            if value is not None:
                values[key] = value
        for key in ConfigLoader._POSITIVE_INT_KEYS:
            value = ConfigLoader._optional_int(payload, key, source_label)
            if value is not None:
                values[key] = value

        overlap_words = ConfigLoader._optional_int(payload, "overlap_words", source_label)
        if overlap_words is not None:
            values["overlap_words"] = overlap_words
        if "chunk_threshold_chars" in payload:
            threshold = ConfigLoader._optional_int(payload, "chunk_threshold_chars", source_label)
            # 0 or null disables chunking.
            values["chunk_threshold_chars"] = threshold or None
        if "prefer_sentence_breaks" in payload:
            values["prefer_sentence_breaks"] = ConfigLoader._required_boolean(
                payload, "prefer_sentence_breaks", source_label
            )
        interval = ConfigLoader._optional_float(payload, "poll_interval_seconds", source_label)
        if interval is not None:
            values["poll_interval_seconds"] = interval
        values["extra"] = ConfigLoader._optional_string_map(payload, "extra", source_label)

        config = EpisodeVoiceConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _validate_keys(payload: Mapping[str, Any], source_label: str) -> None:
        """Validate supported and required keys."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        missing = sorted(key for key in ConfigLoader._REQUIRED_YAML_KEYS if key not in payload)
        if missing:
            key_list = ", ".join(missing)
            raise ValueError(f"{source_label} is missing required key(s): {key_list}.")

    @staticmethod
    def _optional_int(payload: Mapping[str, Any], key: str, source_label: str) -> int | None:
        try:
            return parse_optional_int(payload.get(key), key)
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be an integer.") from exc

    @staticmethod
    def _optional_float(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> float | None:
        try:
            return parse_optional_float(payload.get(key), key)
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}` must be a number.") from exc

    @staticmethod
    def _required_boolean(payload: Mapping[str, Any], key: str, source_label: str) -> bool:
        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ValueError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
