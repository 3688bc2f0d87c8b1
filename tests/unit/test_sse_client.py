"""Unit tests for the Gradio event-stream client and its parsers."""

from __future__ import annotations

import io
from typing import Any

import pytest

from episodevoice.errors import FormatError, PollError, ProviderHttpError, SubmissionError
from episodevoice.models.datatypes import PollKind, ResultRef
from episodevoice.telemetry.logger import RunLogger
from episodevoice.tts.sse_client import (
    SESSION_EXPIRED_MESSAGE,
    SseEventClient,
    build_submission_payload,
    extract_result_refs,
    parse_event_stream,
)
from episodevoice.tts.styles import resolve_style


class _StubFetcher:
    """Fetcher double returning canned POST and GET outcomes."""

    def __init__(
        self,
        *,
        post_response: Any = None,
        stream: str | Exception = "",
    ) -> None:
        """Initialize canned responses and call logs."""

        self.post_response = post_response
        self.stream = stream
        self.posts: list[tuple[str, dict[str, Any]]] = []
        self.gets: list[tuple[str, dict[str, str] | None]] = []

    def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        self.posts.append((url, payload))
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response

    def get_text(self, url: str, *, headers: dict[str, str] | None = None) -> str:
        self.gets.append((url, headers))
        if isinstance(self.stream, Exception):
            raise self.stream
        return self.stream


def test_parse_event_stream_reports_completion_with_last_data() -> None:
    """Last event type and last data line should win."""

    text = (
        "event: generating\n"
        'data: [{"url": "partial.wav"}]\n'
        "\n"
        "event: complete\n"
        'data: [{"url": "final.wav"}]\n'
    )

    result = parse_event_stream(text)

    assert result.is_completed
    assert result.data == [{"url": "final.wav"}]


def test_parse_event_stream_reports_error_message() -> None:
    """Error events should carry string data verbatim."""

    result = parse_event_stream('event: error\ndata: "GPU quota exceeded"\n')

    assert result.is_error
    assert result.message == "GPU quota exceeded"


def test_parse_event_stream_uses_generic_message_for_bare_error() -> None:
    """Error events without data should carry a generic message."""

    result = parse_event_stream("event: error\ndata: null\n")

    assert result.kind is PollKind.ERROR
    assert result.message


def test_parse_event_stream_treats_other_streams_as_processing() -> None:
    """Heartbeats, empty bodies, and data-less completions are still processing."""

    assert parse_event_stream("").is_processing
    assert parse_event_stream("event: heartbeat\ndata: null\n").is_processing
    assert parse_event_stream("event: complete\n").is_processing


def test_parse_event_stream_skips_unparseable_data_lines() -> None:
    """Non-JSON data lines should be skipped and reported as warnings."""

    sink = io.StringIO()
    text = 'event: complete\ndata: ["ok.wav"]\ndata: {broken\n'

    result = parse_event_stream(text, RunLogger(sink=sink))

    assert result.data == ["ok.wav"]
    assert "event=sse_data_unparseable" in sink.getvalue()


@pytest.mark.parametrize(
    "payload",
    [
        [{"url": "https://host.test/a.wav"}],
        [{"value": {"url": "https://host.test/a.wav"}}],
        ["https://host.test/a.wav"],
        {"data": [{"url": "https://host.test/a.wav"}]},
        "https://host.test/a.wav",
    ],
)
def test_extract_result_refs_accepts_known_shapes(payload: Any) -> None:
    """Every accepted completion shape should yield the same reference."""

    refs = extract_result_refs(payload, "https://provider.test")

    assert refs == (ResultRef(url="https://host.test/a.wav", is_playlist=False),)


def test_extract_result_refs_resolves_relative_and_flags_playlists() -> None:
    """Relative URLs should join the base URL and `.m3u8` refs should be flagged."""

    refs = extract_result_refs(
        [{"url": "/gradio_api/file=/tmp/out/playlist.m3u8"}, {"url": "b.wav"}],
        "https://provider.test/",
    )

    assert refs[0].url == "https://provider.test/gradio_api/file=/tmp/out/playlist.m3u8"
    assert refs[0].is_playlist is True
    assert refs[1].url == "https://provider.test/b.wav"


def test_extract_result_refs_requires_a_url() -> None:
    """Payloads without any URL should raise `FormatError`."""

    with pytest.raises(FormatError) as exc_info:
        extract_result_refs([{"path": "/tmp/a.wav"}, None], "https://provider.test")

    assert exc_info.value.failure_kind == "missing_result_url"


def test_build_submission_payload_orders_gradio_parameters() -> None:
    """Payload should carry voice reference, text, and emotion controls in order."""

    style = resolve_style("news-anchor")

    payload = build_submission_payload("Hello there.", style)

    assert len(payload) == 24
    assert payload[1]["url"] == style.voice_sample_url
    assert payload[1]["meta"] == {"_type": "gradio.FileData"}
    assert payload[2] == "Hello there."
    assert payload[3] is None
    assert payload[4] == 0.3
    assert tuple(payload[5:13]) == style.emotion_vector


def test_submit_posts_payload_and_returns_event_id() -> None:
    """Submission should POST to the call endpoint and return the event id."""

    fetcher = _StubFetcher(post_response={"event_id": " abc123 "})
    client = SseEventClient(fetcher, base_url="https://provider.test/", api_name="gen_single")  # type: ignore[arg-type]

    event_id = client.submit(["x"])

    assert event_id == "abc123"
    assert fetcher.posts == [
        ("https://provider.test/gradio_api/call/gen_single", {"data": ["x"]})
    ]


def test_submit_rejects_response_without_event_id() -> None:
    """Responses lacking `event_id` should raise `SubmissionError`."""

    client = SseEventClient(_StubFetcher(post_response={"status": "ok"}))  # type: ignore[arg-type]

    with pytest.raises(SubmissionError) as exc_info:
        client.submit([])

    assert exc_info.value.failure_kind == "missing_event_id"


def test_submit_wraps_http_failures() -> None:
    """Transport and status failures should surface as `SubmissionError`."""

    fetcher = _StubFetcher(
        post_response=ProviderHttpError("HTTP 503", failure_kind="http_error", status_code=503)
    )

    with pytest.raises(SubmissionError) as exc_info:
        SseEventClient(fetcher).submit([])  # type: ignore[arg-type]

    assert exc_info.value.status_code == 503


def test_poll_once_reads_event_stream() -> None:
    """Polling should GET the event stream URL with streaming headers."""

    fetcher = _StubFetcher(stream='event: complete\ndata: ["https://host.test/a.wav"]\n')
    client = SseEventClient(fetcher, base_url="https://provider.test")  # type: ignore[arg-type]

    result = client.poll_once("evt-9")

    assert result.is_completed
    url, headers = fetcher.gets[0]
    assert url == "https://provider.test/gradio_api/call/gen_single/evt-9"
    assert headers is not None and headers["Accept"] == "text/event-stream"


def test_poll_once_maps_404_to_session_expired_error() -> None:
    """A missing event stream should be an error result, not an exception."""

    fetcher = _StubFetcher(
        stream=ProviderHttpError("HTTP 404", failure_kind="not_found", status_code=404)
    )

    result = SseEventClient(fetcher).poll_once("gone")  # type: ignore[arg-type]

    assert result.is_error
    assert result.message == SESSION_EXPIRED_MESSAGE


def test_poll_once_raises_on_other_failures() -> None:
    """Non-404 failures should raise `PollError`."""

    fetcher = _StubFetcher(stream=ProviderHttpError("timed out", failure_kind="timeout"))

    with pytest.raises(PollError) as exc_info:
        SseEventClient(fetcher).poll_once("evt-1")  # type: ignore[arg-type]

    assert exc_info.value.failure_kind == "timeout"
