"""Shared pytest fixtures for the full episodevoice test suite."""

from __future__ import annotations

from collections.abc import Callable
import io
import os
import wave

import pytest

from episodevoice.errors import ProviderHttpError
from episodevoice.models.datatypes import PollResult


def build_wav(
    frame_count: int,
    *,
    sample_rate: int = 8000,
    channels: int = 1,
    sample_width: int = 2,
    fill: bytes = b"\x01\x00",
) -> bytes:
    """Build a PCM WAV payload with the stdlib `wave` writer."""

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(sample_width)
        wav_file.setframerate(sample_rate)
        frame = (fill * channels)[: sample_width * channels]
        wav_file.writeframes(frame * frame_count)
    return buffer.getvalue()


class FakeFetcher:
    """In-memory URL fetcher that records request order."""

    def __init__(self, responses: dict[str, bytes | str | Exception]) -> None:
        """Initialize URL-to-response mapping."""

        self.responses = responses
        self.requested: list[str] = []

    def _lookup(self, url: str) -> bytes | str:
        self.requested.append(url)
        if url not in self.responses:
            raise ProviderHttpError(
                f"Request to {url} failed (HTTP 404).",
                failure_kind="not_found",
                status_code=404,
            )
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def get_bytes(self, url: str, *, headers: dict[str, str] | None = None) -> bytes:
        """Return configured bytes for a URL."""

        response = self._lookup(url)
        return response.encode("utf-8") if isinstance(response, str) else response

    def get_text(self, url: str, *, headers: dict[str, str] | None = None) -> str:
        """Return configured text for a URL."""

        response = self._lookup(url)
        return response.decode("utf-8") if isinstance(response, bytes) else response


class ScriptedProviderClient:
    """Provider client double returning scripted poll outcomes per event id."""

    def __init__(self, base_url: str = "https://provider.test") -> None:
        """Initialize empty submission log and poll scripts."""

        self.base_url = base_url
        self.submitted: list[list[object]] = []
        self.polled: list[str] = []
        self.scripts: dict[str, list[PollResult | Exception]] = {}
        self.submit_error: Exception | None = None

    def submit(self, payload: list[object]) -> str:
        """Record payload and return a sequential event id."""

        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(payload)
        return f"evt-{len(self.submitted)}"

    def poll_once(self, provider_job_id: str) -> PollResult:
        """Pop the next scripted outcome for the event id."""

        self.polled.append(provider_job_id)
        script = self.scripts.get(provider_job_id, [])
        outcome = script.pop(0) if script else PollResult.processing()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingStorageSink:
    """Storage sink double keeping written objects in memory."""

    def __init__(self) -> None:
        """Initialize empty object map."""

        self.objects: dict[str, bytes] = {}

    def put(self, key: str, data: bytes) -> str:
        """Store bytes and return a deterministic URL."""

        self.objects[key] = data
        return f"https://cdn.test/{key}"


class InMemoryCredentialStore:
    """Credential store double with no OS keyring access."""

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize optional stored key."""

        self.api_key = api_key

    def is_available(self) -> bool:
        return True

    def backend_name(self) -> str:
        return "memory"

    def get_api_key(self) -> str | None:
        return self.api_key

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key.strip()

    def clear_api_key(self) -> bool:
        existed = self.api_key is not None
        self.api_key = None
        return existed


@pytest.fixture
def wav_factory() -> Callable[..., bytes]:
    """Provide the stdlib-backed WAV builder."""

    return build_wav


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Provide an empty in-memory credential store."""

    return InMemoryCredentialStore()


@pytest.fixture(autouse=True)
def _isolate_runtime_environment(
    monkeypatch: pytest.MonkeyPatch, credential_store: InMemoryCredentialStore
) -> None:
    """Keep tests away from the OS keyring and ambient `EPISODEVOICE_*` variables."""

    for key in list(os.environ):
        if key.startswith("EPISODEVOICE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("episodevoice.cli.create_credential_store", lambda: credential_store)


@pytest.fixture
def fetcher_factory() -> Callable[[dict[str, bytes | str | Exception]], FakeFetcher]:
    """Provide a constructor for in-memory URL fetchers."""

    return FakeFetcher


@pytest.fixture
def provider_client() -> ScriptedProviderClient:
    """Provide a scripted provider client."""

    return ScriptedProviderClient()


@pytest.fixture
def storage_sink() -> RecordingStorageSink:
    """Provide an in-memory storage sink."""

    return RecordingStorageSink()
