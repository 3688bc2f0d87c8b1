"""Playable duration derived from WAV header fields."""

from __future__ import annotations

from collections.abc import Sequence
import math

from ..errors import FormatError
from ..models.datatypes import AudioChunk, DurationEstimate
from ..telemetry.logger import RunLogger
from .wav import CanonicalWavHeader, parse_wav_header

_FALLBACK_BYTES_PER_SECOND = 16000


def declared_total_seconds(chunks: Sequence[AudioChunk]) -> float | None:
    """Sum declared chunk durations, or return `None` when any chunk lacks one."""

    if not chunks or any(chunk.declared_duration_seconds is None for chunk in chunks):
        return None
    return sum(chunk.declared_duration_seconds or 0.0 for chunk in chunks)


class DurationCalculator:
    """Compute whole-second duration of WAV bytes.

    The canonical 44-byte layout is read first. Containers with extra
    sub-chunks before `data` (`LIST` metadata, for example) are measured by
    walking their chunks. Duration is advisory metadata, so unreadable bytes
    degrade to a declared duration or a size-based estimate, both flagged as
    approximate, instead of raising.
    """

    def __init__(self, run_logger: RunLogger | None = None) -> None:
        self._run_logger = run_logger

    def duration(
        self, wav_bytes: bytes, declared_seconds: float | None = None
    ) -> DurationEstimate:
        """Return `ceil(data_size / bytes_per_second)` or a flagged fallback.

        Args:
            wav_bytes: Audio container bytes.
            declared_seconds: Duration announced alongside the audio, used
                when the bytes carry no readable WAV header.
        """

        try:
            data_size, bytes_per_second = self._read_header(wav_bytes)
        except FormatError as exc:
            return self._fallback(wav_bytes, declared_seconds, reason=exc.failure_kind)

        return DurationEstimate(
            seconds=math.ceil(data_size / bytes_per_second),
            approximate=False,
        )

    def _read_header(self, wav_bytes: bytes) -> tuple[int, float]:
        """Return `(data_size, bytes_per_second)` from the container header."""

        header = CanonicalWavHeader.unpack(wav_bytes)
        if header.riff_id != b"RIFF" or header.wave_id != b"WAVE":
            raise FormatError("Missing RIFF/WAVE magic.", failure_kind="riff")

        if header.fmt_id == b"fmt " and header.fmt_size == 16 and header.data_id == b"data":
            data_size = header.data_size
            channels = header.channels
            sample_rate = header.sample_rate
            bits_per_sample = header.bits_per_sample
        else:
            info = parse_wav_header(wav_bytes)
            data_size = info.data_size
            channels = info.channels
            sample_rate = info.sample_rate
            bits_per_sample = info.bits_per_sample

        bytes_per_second = sample_rate * channels * (bits_per_sample / 8)
        if bytes_per_second <= 0:
            raise FormatError("WAV header declares zero byte rate.", failure_kind="fmt")
        return data_size, bytes_per_second

    def _fallback(
        self, wav_bytes: bytes, declared_seconds: float | None, *, reason: str | None
    ) -> DurationEstimate:
        if declared_seconds is not None and declared_seconds > 0:
            estimate = max(1, math.ceil(declared_seconds))
            source = "declared"
        else:
            estimate = max(1, math.ceil(len(wav_bytes) / _FALLBACK_BYTES_PER_SECOND))
            source = "size"
        if self._run_logger is not None:
            self._run_logger.log_warning(
                "duration",
                "fallback_estimate",
                reason=reason,
                source=source,
                size_bytes=len(wav_bytes),
                seconds=estimate,
            )
        return DurationEstimate(seconds=estimate, approximate=True)
