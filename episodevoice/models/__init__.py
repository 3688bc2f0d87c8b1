"""Shared typed data models for episodevoice.

This package contains dataclasses used across modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    AudioChunk,
    ChunkValidation,
    DurationEstimate,
    GenerationJob,
    HlsSegmentSet,
    JobStatus,
    PollKind,
    PollResult,
    ResultRef,
    SubmissionReceipt,
    TextChunk,
    WavHeaderInfo,
)

__all__ = [
    "AudioChunk",
    "ChunkValidation",
    "DurationEstimate",
    "GenerationJob",
    "HlsSegmentSet",
    "JobStatus",
    "PollKind",
    "PollResult",
    "ResultRef",
    "SubmissionReceipt",
    "TextChunk",
    "WavHeaderInfo",
]
