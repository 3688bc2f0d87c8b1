"""Core datatypes shared across episodevoice modules.

Responsibilities:
- Represent immutable records exchanged between chunking, provider, and audio stages.
- Provide explicit typing and JSON mapping helpers for persisted job records.

Key types:
- `TextChunk`, `ChunkValidation`, `AudioChunk`, `WavHeaderInfo`, `HlsSegmentSet`,
  `PollResult`, `ResultRef`, `DurationEstimate`, `SubmissionReceipt`,
  and `GenerationJob`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class JobStatus(str, Enum):
    """Persisted status values of a generation job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transitions are allowed from this status."""

        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class PollKind(str, Enum):
    """Tri-state outcome of one event-stream read."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A provider-safe slice of the input text.

    Attributes:
        text: Space-joined chunk words, including leading overlap words.
        start_word: Word index bookkeeping for the chunk start.
        end_word: Index of the last word consumed by this chunk.
        word_count: Number of words in `text`.
        char_count: Number of characters in `text`.
    """

    text: str
    start_word: int
    end_word: int
    word_count: int
    char_count: int


@dataclass(frozen=True, slots=True)
class ChunkValidation:
    """Coverage report comparing chunk output against the original text."""

    original_word_count: int
    total_chunk_words: int
    total_overlap_words: int
    chunk_count: int
    coverage: float
    is_valid: bool


@dataclass(frozen=True, slots=True)
class AudioChunk:
    """Raw container bytes for one synthesized chunk, held only during merge."""

    data: bytes
    declared_duration_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class WavHeaderInfo:
    """Format and payload location parsed from one WAV container.

    Attributes:
        audio_format: WAVE format tag (1 for PCM).
        channels: Channel count.
        sample_rate: Samples per second.
        bits_per_sample: Bit depth of one sample.
        data_offset: Byte offset of the PCM payload.
        data_size: Declared size of the PCM payload in bytes.
    """

    audio_format: int
    channels: int
    sample_rate: int
    bits_per_sample: int
    data_offset: int
    data_size: int

    def format_signature(self) -> tuple[int, int, int, int]:
        """Return the fields that must match across merged chunks."""

        return (self.audio_format, self.channels, self.sample_rate, self.bits_per_sample)


@dataclass(frozen=True, slots=True)
class HlsSegmentSet:
    """Absolute segment URLs resolved from a playlist, in playlist order.

    `segment_durations` holds the `#EXTINF` duration of every segment, or is
    empty when any segment lacks one.
    """

    playlist_url: str
    segment_urls: tuple[str, ...]
    segment_durations: tuple[float, ...] = ()

    @property
    def declared_duration_seconds(self) -> float | None:
        if not self.segment_durations:
            return None
        return sum(self.segment_durations)


@dataclass(frozen=True, slots=True)
class PollResult:
    """Outcome of reading one provider event stream.

    Use the `processing`, `completed`, and `error` constructors instead of
    building instances directly.
    """

    kind: PollKind
    data: Any = None
    message: str | None = None

    @classmethod
    def processing(cls) -> PollResult:
        """Return a result meaning the stream was not ready to read yet."""

        return cls(kind=PollKind.PROCESSING)

    @classmethod
    def completed(cls, data: Any) -> PollResult:
        """Return a completion result carrying provider output data."""

        return cls(kind=PollKind.COMPLETED, data=data)

    @classmethod
    def error(cls, message: str) -> PollResult:
        """Return a provider-reported failure result."""

        return cls(kind=PollKind.ERROR, message=message)

    @property
    def is_processing(self) -> bool:
        return self.kind is PollKind.PROCESSING

    @property
    def is_completed(self) -> bool:
        return self.kind is PollKind.COMPLETED

    @property
    def is_error(self) -> bool:
        return self.kind is PollKind.ERROR


@dataclass(frozen=True, slots=True)
class ResultRef:
    """Reference to one provider result file or playlist."""

    url: str
    is_playlist: bool = False

    def to_mapping(self) -> dict[str, object]:
        return {"url": self.url, "is_playlist": self.is_playlist}

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> ResultRef:
        return cls(url=str(payload["url"]), is_playlist=bool(payload.get("is_playlist", False)))


@dataclass(frozen=True, slots=True)
class DurationEstimate:
    """Playable duration in whole seconds and whether it was estimated."""

    seconds: int
    approximate: bool = False


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Identifiers returned to callers after a successful submission."""

    episode_id: str
    provider_job_id: str
    provider_job_ids: tuple[str, ...]
    chunk_count: int


@dataclass(frozen=True, slots=True)
class GenerationJob:
    """Persisted state of one episode's audio generation.

    Attributes:
        episode_id: Caller-owned key of the job record.
        provider_job_id: First provider job id; the only one for unchunked text.
        provider_job_ids: One provider job id per submitted chunk, in playback order.
        status: Current job status.
        result_refs: Result references collected so far, aligned with `provider_job_ids`.
        style: Voice style used for submission.
        chunk_count: Number of text chunks submitted.
        error_message: Failure detail for `failed` jobs.
        audio_url: Storage URL of the final audio for `completed` jobs.
        storage_key: Storage key of the final audio.
        duration_seconds: Duration of the final audio.
        duration_approximate: Whether the duration came from the size heuristic.
        file_size_bytes: Size of the stored audio.
        created_at: ISO-8601 creation timestamp.
        updated_at: ISO-8601 timestamp of the last mutation.
    """

    episode_id: str
    provider_job_id: str
    provider_job_ids: tuple[str, ...] = field(default_factory=tuple)
    status: JobStatus = JobStatus.PENDING
    result_refs: tuple[ResultRef, ...] = field(default_factory=tuple)
    style: str | None = None
    chunk_count: int = 1
    error_message: str | None = None
    audio_url: str | None = None
    storage_key: str | None = None
    duration_seconds: int | None = None
    duration_approximate: bool = False
    file_size_bytes: int | None = None
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def pending_provider_job_id(self) -> str | None:
        """Return the next provider job id still missing a result reference."""

        job_ids = self.provider_job_ids or (self.provider_job_id,)
        if len(self.result_refs) >= len(job_ids):
            return None
        return job_ids[len(self.result_refs)]

    def evolve(self, **changes: Any) -> GenerationJob:
        """Return a copy with `changes` applied and `updated_at` refreshed."""

        changes.setdefault("updated_at", utc_timestamp())
        return replace(self, **changes)

    def to_mapping(self) -> dict[str, object]:
        """Serialize the job into a JSON-compatible mapping."""

        return {
            "episode_id": self.episode_id,
            "provider_job_id": self.provider_job_id,
            "provider_job_ids": list(self.provider_job_ids),
            "status": self.status.value,
            "result_refs": [ref.to_mapping() for ref in self.result_refs],
            "style": self.style,
            "chunk_count": self.chunk_count,
            "error_message": self.error_message,
            "audio_url": self.audio_url,
            "storage_key": self.storage_key,
            "duration_seconds": self.duration_seconds,
            "duration_approximate": self.duration_approximate,
            "file_size_bytes": self.file_size_bytes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> GenerationJob:
        """Deserialize a job from a mapping produced by `to_mapping`."""

        provider_job_id = str(payload["provider_job_id"])
        raw_job_ids = payload.get("provider_job_ids") or [provider_job_id]
        raw_refs = payload.get("result_refs") or []
        return cls(
            episode_id=str(payload["episode_id"]),
            provider_job_id=provider_job_id,
            provider_job_ids=tuple(str(item) for item in raw_job_ids),
            status=JobStatus(str(payload.get("status", JobStatus.PENDING.value))),
            result_refs=tuple(ResultRef.from_mapping(item) for item in raw_refs),
            style=payload.get("style"),
            chunk_count=int(payload.get("chunk_count", len(raw_job_ids))),
            error_message=payload.get("error_message"),
            audio_url=payload.get("audio_url"),
            storage_key=payload.get("storage_key"),
            duration_seconds=payload.get("duration_seconds"),
            duration_approximate=bool(payload.get("duration_approximate", False)),
            file_size_bytes=payload.get("file_size_bytes"),
            created_at=str(payload.get("created_at") or utc_timestamp()),
            updated_at=str(payload.get("updated_at") or utc_timestamp()),
        )
