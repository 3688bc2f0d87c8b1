"""TTS provider integration components."""

from .sse_client import (
    SseEventClient,
    build_submission_payload,
    extract_result_refs,
    parse_event_stream,
)
from .styles import VoiceStyle, available_styles, resolve_style

__all__ = [
    "SseEventClient",
    "VoiceStyle",
    "available_styles",
    "build_submission_payload",
    "extract_result_refs",
    "parse_event_stream",
    "resolve_style",
]
