"""RIFF/WAVE header codec.

Responsibilities:
- Locate `fmt ` and `data` sub-chunks by scanning id/size pairs.
- Encode the canonical 44-byte PCM header from a typed field layout.

All multi-byte integers are little-endian.
"""

from __future__ import annotations

from dataclasses import astuple, dataclass
import struct

from ..errors import FormatError
from ..models.datatypes import WavHeaderInfo

CANONICAL_HEADER_SIZE = 44

_RIFF_PREAMBLE = struct.Struct("<4sI4s")
_CHUNK_PREFIX = struct.Struct("<4sI")
_FMT_FIELDS = struct.Struct("<HHIIHH")
_CANONICAL_LAYOUT = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True, slots=True)
class CanonicalWavHeader:
    """Field-by-field view of the canonical 44-byte WAV header.

    Field order matches the on-disk layout, so `pack` is a single struct call.
    """

    riff_id: bytes
    file_size: int
    wave_id: bytes
    fmt_id: bytes
    fmt_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_id: bytes
    data_size: int

    @classmethod
    def for_payload(
        cls,
        *,
        audio_format: int,
        channels: int,
        sample_rate: int,
        bits_per_sample: int,
        data_length: int,
    ) -> CanonicalWavHeader:
        """Derive header sizes and rates for a PCM payload of `data_length` bytes."""

        bytes_per_sample = bits_per_sample // 8
        block_align = channels * bytes_per_sample
        return cls(
            riff_id=b"RIFF",
            file_size=36 + data_length,
            wave_id=b"WAVE",
            fmt_id=b"fmt ",
            fmt_size=16,
            audio_format=audio_format,
            channels=channels,
            sample_rate=sample_rate,
            byte_rate=sample_rate * block_align,
            block_align=block_align,
            bits_per_sample=bits_per_sample,
            data_id=b"data",
            data_size=data_length,
        )

    def pack(self) -> bytes:
        return _CANONICAL_LAYOUT.pack(*astuple(self))

    @classmethod
    def unpack(cls, data: bytes) -> CanonicalWavHeader:
        """Read the canonical layout from the first 44 bytes of `data`.

        Raises:
            FormatError: If fewer than 44 bytes are available.
        """

        if len(data) < CANONICAL_HEADER_SIZE:
            raise FormatError(
                f"WAV payload is {len(data)} bytes; canonical header needs "
                f"{CANONICAL_HEADER_SIZE}.",
                failure_kind="truncated_header",
            )
        return cls(*_CANONICAL_LAYOUT.unpack_from(data, 0))


def build_wav_header(info: WavHeaderInfo, data_length: int) -> bytes:
    """Build a canonical header for `data_length` bytes using `info`'s format."""

    return CanonicalWavHeader.for_payload(
        audio_format=info.audio_format,
        channels=info.channels,
        sample_rate=info.sample_rate,
        bits_per_sample=info.bits_per_sample,
        data_length=data_length,
    ).pack()


def parse_wav_header(data: bytes) -> WavHeaderInfo:
    """Parse format fields and PCM payload location from a WAV container.

    Sub-chunks are located by scanning from byte 12, so `LIST` or other
    extension chunks before `data` are skipped correctly.

    Raises:
        FormatError: If `RIFF`/`WAVE` magic, `fmt `, or `data` is missing.
    """

    if len(data) < _RIFF_PREAMBLE.size:
        raise FormatError("Invalid WAV file: too short for RIFF header.", failure_kind="riff")
    riff_id, _riff_size, wave_id = _RIFF_PREAMBLE.unpack_from(data, 0)
    if riff_id != b"RIFF":
        raise FormatError("Invalid WAV file: missing RIFF header.", failure_kind="riff")
    if wave_id != b"WAVE":
        raise FormatError("Invalid WAV file: missing WAVE format.", failure_kind="wave")

    fmt_fields: tuple[int, ...] | None = None
    data_offset: int | None = None
    data_size = 0
    for chunk_id, chunk_offset, chunk_size in _iter_sub_chunks(data):
        if chunk_id == b"fmt " and fmt_fields is None:
            if chunk_size < _FMT_FIELDS.size or chunk_offset + _FMT_FIELDS.size > len(data):
                raise FormatError("Invalid WAV file: truncated fmt chunk.", failure_kind="fmt")
            fmt_fields = _FMT_FIELDS.unpack_from(data, chunk_offset)
        elif chunk_id == b"data":
            data_offset = chunk_offset
            data_size = chunk_size
            break

    if fmt_fields is None:
        raise FormatError("Invalid WAV file: missing fmt chunk.", failure_kind="fmt")
    if data_offset is None:
        raise FormatError("Invalid WAV file: missing data chunk.", failure_kind="data")

    audio_format, channels, sample_rate, _byte_rate, _block_align, bits_per_sample = fmt_fields
    return WavHeaderInfo(
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        bits_per_sample=bits_per_sample,
        data_offset=data_offset,
        data_size=data_size,
    )


def extract_pcm_payload(data: bytes, info: WavHeaderInfo | None = None) -> bytes:
    """Return exactly `data_size` payload bytes starting at `data_offset`.

    Raises:
        FormatError: If the container is shorter than its declared payload.
    """

    header = info if info is not None else parse_wav_header(data)
    end = header.data_offset + header.data_size
    if end > len(data):
        raise FormatError(
            f"WAV data chunk declares {header.data_size} bytes but only "
            f"{len(data) - header.data_offset} are present.",
            failure_kind="truncated_data",
        )
    return data[header.data_offset : end]


def _iter_sub_chunks(data: bytes):
    """Yield `(chunk_id, payload_offset, payload_size)` for RIFF sub-chunks."""

    offset = _RIFF_PREAMBLE.size
    while offset + _CHUNK_PREFIX.size <= len(data):
        chunk_id, chunk_size = _CHUNK_PREFIX.unpack_from(data, offset)
        payload_offset = offset + _CHUNK_PREFIX.size
        yield chunk_id, payload_offset, chunk_size
        # Sub-chunks are word aligned.
        offset = payload_offset + chunk_size + (chunk_size & 1)
