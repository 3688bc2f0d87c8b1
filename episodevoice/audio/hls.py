"""Segmented HLS stream reconstruction.

Responsibilities:
- Parse `.m3u8` playlists into ordered absolute segment URLs and declared durations.
- Download segments sequentially and concatenate their bytes.
"""

from __future__ import annotations

from typing import Protocol

from ..errors import FormatError, GenerationError, MergeError, PollError
from ..models.datatypes import AudioChunk, HlsSegmentSet
from ..telemetry.logger import RunLogger

_EXTINF_TAG = "#EXTINF:"


class Fetcher(Protocol):
    """Fetch capability required by the assembler."""

    def get_text(self, url: str) -> str:
        """Return the body of `url` as text."""

    def get_bytes(self, url: str) -> bytes:
        """Return the body of `url` as bytes."""


def is_playlist_url(url: str) -> bool:
    """Return whether the URL path names an HLS playlist."""

    path = url.split("?", 1)[0].split("#", 1)[0]
    return path.lower().endswith(".m3u8")


def parse_playlist(text: str, playlist_url: str) -> HlsSegmentSet:
    """Resolve segment lines of a playlist against the playlist location.

    Blank lines and `#` tag/comment lines are skipped. Lines starting with
    `http` are kept as-is; all others are appended to the playlist URL up to
    and including its last `/`. An `#EXTINF:<seconds>,` tag declares the
    duration of the segment line that follows it.
    """

    base_url = playlist_url[: playlist_url.rfind("/") + 1]
    segment_urls: list[str] = []
    durations: list[float | None] = []
    pending_duration: float | None = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith(_EXTINF_TAG):
            pending_duration = _parse_extinf(line)
            continue
        if not line or line.startswith("#"):
            continue
        segment_urls.append(line if line.startswith("http") else f"{base_url}{line}")
        durations.append(pending_duration)
        pending_duration = None

    segment_durations: tuple[float, ...] = ()
    if durations and all(duration is not None for duration in durations):
        segment_durations = tuple(duration for duration in durations if duration is not None)
    return HlsSegmentSet(
        playlist_url=playlist_url,
        segment_urls=tuple(segment_urls),
        segment_durations=segment_durations,
    )


def _parse_extinf(line: str) -> float | None:
    value = line[len(_EXTINF_TAG) :].split(",", 1)[0].strip()
    try:
        duration = float(value)
    except ValueError:
        return None
    return duration if duration >= 0 else None


class HlsAssembler:
    """Fetch a playlist and concatenate its segments in playlist order."""

    def __init__(self, fetcher: Fetcher, run_logger: RunLogger | None = None) -> None:
        self._fetcher = fetcher
        self._run_logger = run_logger

    def assemble(self, playlist_url: str) -> AudioChunk:
        """Concatenate every playlist segment, carrying its `#EXTINF` total as declared duration.

        Raises:
            FormatError: If the playlist lists no segments.
            PollError: If the playlist or any segment cannot be fetched.
            MergeError: If the segments concatenate to zero bytes.
        """

        try:
            playlist_text = self._fetcher.get_text(playlist_url)
        except GenerationError as exc:
            raise PollError(
                f"Failed to fetch playlist {playlist_url}: {exc}",
                failure_kind="playlist_fetch",
                status_code=exc.status_code,
            ) from exc

        segments = parse_playlist(playlist_text, playlist_url)
        if not segments.segment_urls:
            raise FormatError(
                f"No segments found in playlist {playlist_url}.",
                failure_kind="empty_playlist",
            )

        total = len(segments.segment_urls)
        parts: list[bytes] = []
        for index, segment_url in enumerate(segments.segment_urls):
            try:
                parts.append(self._fetcher.get_bytes(segment_url))
            except GenerationError as exc:
                raise PollError(
                    f"Failed to download segment {index}: {exc}",
                    failure_kind="segment_fetch",
                    status_code=exc.status_code,
                ) from exc
            if self._run_logger is not None:
                self._run_logger.log_debug(
                    "hls",
                    "segment_downloaded",
                    index=index,
                    total=total,
                    size_bytes=len(parts[-1]),
                )

        assembled = b"".join(parts)
        if not assembled:
            raise MergeError(
                f"Playlist {playlist_url} segments contained no audio bytes.",
                failure_kind="empty_output",
            )
        if self._run_logger is not None:
            self._run_logger.log_event(
                "hls",
                "assembled",
                segments=total,
                size_bytes=len(assembled),
                declared_seconds=segments.declared_duration_seconds,
            )
        return AudioChunk(
            data=assembled,
            declared_duration_seconds=segments.declared_duration_seconds,
        )
