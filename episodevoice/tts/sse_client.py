"""Gradio event-stream client for asynchronous TTS providers.

Responsibilities:
- Submit synthesis jobs and return the provider event id.
- Read one provider event stream per call and parse it into a `PollResult`.
- Extract result references from the provider's completion payload shapes.

The provider's event stream is treated as readable at most once. A
`processing` result means the stream was not ready, so callers should wait
before polling the same job again.
"""

from __future__ import annotations

import json
from typing import Any

from ..audio.hls import is_playlist_url
from ..errors import FormatError, ProviderHttpError, PollError, SubmissionError
from ..io.http import HttpFetcher
from ..models.datatypes import PollResult, ResultRef
from ..telemetry.logger import RunLogger
from .styles import VoiceStyle

DEFAULT_BASE_URL = "https://tom1986-indextts2.hf.space"
DEFAULT_API_NAME = "gen_single"
SESSION_EXPIRED_MESSAGE = "Session expired or not found. IndexTTS sessions are short-lived."
_GENERIC_STREAM_ERROR = "Unknown error (SSE stream error)"
_EMOTION_CONTROL_METHOD = "Same as the voice reference"


def _file_data(url: str, orig_name: str) -> dict[str, Any]:
    """Build a Gradio `FileData` reference to a remote audio file."""

    return {
        "path": url,
        "url": url,
        "size": None,
        "orig_name": orig_name,
        "mime_type": "audio/mpeg",
        "is_stream": False,
        "meta": {"_type": "gradio.FileData"},
    }


def build_submission_payload(text: str, style: VoiceStyle) -> list[Any]:
    """Build the ordered Gradio parameter list for one synthesis job."""

    emotion_sample = (
        _file_data(style.emotion_sample_url, "emotion_sample.mp3")
        if style.emotion_sample_url
        else None
    )
    return [
        _EMOTION_CONTROL_METHOD,
        _file_data(style.voice_sample_url, "voice_sample.mp3"),
        text,
        emotion_sample,
        style.emotion_weight,
        *style.emotion_vector,
        "",  # emo_text
        False,  # emo_random
        120,  # max_text_tokens_per_segment
        True,  # do_sample
        0.8,  # top_p
        30,  # top_k
        0.8,  # temperature
        0,  # length_penalty
        3,  # num_beams
        10,  # repetition_penalty
        1500,  # max_mel_tokens
    ]


def parse_event_stream(text: str, run_logger: RunLogger | None = None) -> PollResult:
    """Parse buffered `event:`/`data:` lines into a tri-state result.

    The last event type and the last parseable data line win. Data lines that
    are not valid JSON are skipped.
    """

    event_type: str | None = None
    event_data: Any = None
    for line in text.split("\n"):
        if line.startswith("event: "):
            event_type = line[len("event: ") :].strip()
        elif line.startswith("data: "):
            try:
                event_data = json.loads(line[len("data: ") :])
            except json.JSONDecodeError:
                if run_logger is not None:
                    run_logger.log_warning("poll", "sse_data_unparseable", length=len(line))

    if event_type == "complete" and event_data is not None:
        return PollResult.completed(event_data)
    if event_type == "error":
        if event_data is None:
            return PollResult.error(_GENERIC_STREAM_ERROR)
        if isinstance(event_data, str):
            return PollResult.error(event_data)
        return PollResult.error(json.dumps(event_data, ensure_ascii=False))
    return PollResult.processing()


def _url_from_item(item: Any) -> str | None:
    """Return the URL carried by one output item, if any."""

    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, dict):
        url = item.get("url")
        if isinstance(url, str) and url.strip():
            return url.strip()
        value = item.get("value")
        if isinstance(value, dict):
            return _url_from_item(value)
    return None


def _absolute_url(url: str, base_url: str) -> str:
    if url.startswith("http"):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def extract_result_refs(data: Any, base_url: str) -> tuple[ResultRef, ...]:
    """Extract ordered result references from a completion payload.

    Accepted shapes are `[{"url"}]`, `[{"value": {"url"}}]`, `["url"]`,
    `{"data": [...]}`, and a plain `"url"` string.

    Raises:
        FormatError: If no URL is present.
    """

    if isinstance(data, dict) and "data" in data:
        data = data["data"]
    items = data if isinstance(data, list) else [data]

    refs: list[ResultRef] = []
    for item in items:
        url = _url_from_item(item)
        if url is None:
            continue
        absolute = _absolute_url(url, base_url)
        refs.append(ResultRef(url=absolute, is_playlist=is_playlist_url(absolute)))

    if not refs:
        raise FormatError(
            "No audio URL in completed result.",
            failure_kind="missing_result_url",
        )
    return tuple(refs)


class SseEventClient:
    """Submission and single-shot event-stream client for a Gradio endpoint."""

    def __init__(
        self,
        fetcher: HttpFetcher,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_name: str = DEFAULT_API_NAME,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.api_name = api_name
        self._run_logger = run_logger

    @property
    def call_url(self) -> str:
        return f"{self.base_url}/gradio_api/call/{self.api_name}"

    def submit(self, payload: list[Any]) -> str:
        """Submit one synthesis job and return its provider event id.

        Raises:
            SubmissionError: On HTTP failure, invalid JSON, or a missing `event_id`.
        """

        try:
            response = self.fetcher.post_json(self.call_url, {"data": payload})
        except ProviderHttpError as exc:
            raise SubmissionError(
                f"Provider submission failed: {exc}",
                failure_kind=exc.failure_kind,
                status_code=exc.status_code,
            ) from exc

        event_id = response.get("event_id") if isinstance(response, dict) else None
        if not isinstance(event_id, str) or not event_id.strip():
            raise SubmissionError(
                "Provider submission response is missing `event_id`.",
                failure_kind="missing_event_id",
            )
        if self._run_logger is not None:
            self._run_logger.log_event("submit", "accepted", event_id=event_id)
        return event_id.strip()

    def poll_once(self, provider_job_id: str) -> PollResult:
        """Read the job's event stream once and classify it.

        Raises:
            PollError: On transport failure or a non-404 error status.
        """

        url = f"{self.call_url}/{provider_job_id}"
        try:
            text = self.fetcher.get_text(
                url,
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            )
        except ProviderHttpError as exc:
            if exc.status_code == 404:
                if self._run_logger is not None:
                    self._run_logger.log_warning(
                        "poll", "session_not_found", event_id=provider_job_id
                    )
                return PollResult.error(SESSION_EXPIRED_MESSAGE)
            raise PollError(
                f"Failed to poll event status: {exc}",
                failure_kind=exc.failure_kind,
                status_code=exc.status_code,
            ) from exc

        result = parse_event_stream(text, self._run_logger)
        if self._run_logger is not None:
            self._run_logger.log_event(
                "poll",
                "outcome",
                event_id=provider_job_id,
                kind=result.kind.value,
                length=len(text),
            )
        return result
