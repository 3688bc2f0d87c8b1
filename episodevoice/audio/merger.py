"""WAV chunk merge stage.

Responsibilities:
- Merge raw WAV chunk bytes into one playable WAV asset.
- Preserve caller-supplied chunk order and reject mixed audio formats.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import FormatError, MergeError
from ..models.datatypes import AudioChunk
from ..telemetry.logger import RunLogger
from .wav import build_wav_header, extract_pcm_payload, parse_wav_header


class WavMerger:
    """Concatenate PCM payloads of WAV chunks under one rebuilt header."""

    def __init__(self, run_logger: RunLogger | None = None) -> None:
        self._run_logger = run_logger

    def merge(self, chunks: Sequence[AudioChunk]) -> bytes:
        """Merge ordered audio chunks into one WAV byte string.

        A single chunk is returned byte-identical. For several chunks, the first
        chunk's format parameters define the output header.

        Raises:
            MergeError: If no chunks are supplied.
            FormatError: If a chunk is not a valid WAV container, or its
                format differs from the first chunk's.
        """

        if not chunks:
            raise MergeError("No audio chunks to merge.", failure_kind="empty_input")
        if len(chunks) == 1:
            return chunks[0].data

        first_info = parse_wav_header(chunks[0].data)
        expected_signature = first_info.format_signature()

        payloads: list[bytes] = []
        for position, chunk in enumerate(chunks):
            info = first_info if position == 0 else parse_wav_header(chunk.data)
            if info.format_signature() != expected_signature:
                raise FormatError(
                    f"Audio chunk {position} format {self._describe(info.format_signature())} "
                    f"differs from chunk 0 format {self._describe(expected_signature)}.",
                    failure_kind="format_mismatch",
                )
            payloads.append(extract_pcm_payload(chunk.data, info))

        merged_payload = b"".join(payloads)
        merged = build_wav_header(first_info, len(merged_payload)) + merged_payload

        if self._run_logger is not None:
            self._run_logger.log_event(
                "merge",
                "wav_merged",
                chunks=len(chunks),
                data_bytes=len(merged_payload),
                total_bytes=len(merged),
                sample_rate=first_info.sample_rate,
                channels=first_info.channels,
            )
        return merged

    @staticmethod
    def _describe(signature: tuple[int, int, int, int]) -> str:
        audio_format, channels, sample_rate, bits_per_sample = signature
        return f"(format={audio_format}, channels={channels}, rate={sample_rate}, bits={bits_per_sample})"
