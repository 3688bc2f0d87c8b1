"""Audio reconstruction components.

This package merges WAV chunks, derives playable duration, and assembles
segmented HLS streams into one byte sequence.
"""

from .duration import DurationCalculator
from .hls import HlsAssembler, is_playlist_url, parse_playlist
from .merger import WavMerger
from .wav import build_wav_header, extract_pcm_payload, parse_wav_header

__all__ = [
    "DurationCalculator",
    "HlsAssembler",
    "WavMerger",
    "build_wav_header",
    "extract_pcm_payload",
    "is_playlist_url",
    "parse_playlist",
    "parse_wav_header",
]
