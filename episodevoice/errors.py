"""Domain exceptions for generation jobs and CLI diagnostics.

Responsibilities:
- Provide one taxonomy for submission, polling, format, merge, and storage failures.
- Carry stage-scoped detail and hints for concise command diagnostics.
"""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific command stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class GenerationError(RuntimeError):
    """Base class for failures raised while generating episode audio."""

    def __init__(
        self,
        detail: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
    ) -> None:
        """Initialize error metadata used by job records and diagnostics."""

        super().__init__(detail)
        self.detail = detail
        self.failure_kind = failure_kind
        self.status_code = status_code


class ProviderHttpError(GenerationError):
    """Raised by the HTTP fetch capability on transport or status failures."""


class SubmissionError(GenerationError):
    """Raised when the provider rejects or garbles the initial submission call."""


class PollError(GenerationError):
    """Raised on network failure or provider-side expiry while reading job results."""


class FormatError(GenerationError):
    """Raised on malformed WAV/HLS input or mismatched audio formats across chunks."""


class MergeError(GenerationError):
    """Raised when there is nothing to merge or assembly produced zero bytes."""


class StorageError(GenerationError):
    """Raised when the storage sink fails to persist audio bytes."""


class JobNotFoundError(GenerationError):
    """Raised when no job record exists for an episode id."""
