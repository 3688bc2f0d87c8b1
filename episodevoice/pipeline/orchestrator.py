"""Generation job orchestration.

Responsibilities:
- Submit (optionally chunked) narration text and record a `pending` job.
- Advance a job by exactly one provider poll per `poll` call.
- Resolve, merge, measure, and store final audio, then finalize the job record.

Key types:
- `GenerationOrchestrator`: owner of every `GenerationJob` state transition.
"""

from __future__ import annotations

from dataclasses import replace

from ..audio.duration import DurationCalculator, declared_total_seconds
from ..audio.hls import HlsAssembler
from ..audio.merger import WavMerger
from ..errors import JobNotFoundError, MergeError, PollError, ProviderHttpError
from ..io.http import HttpFetcher
from ..io.job_store import JobRecordStore
from ..io.storage import StorageSink
from ..models.datatypes import (
    AudioChunk,
    GenerationJob,
    JobStatus,
    ResultRef,
    SubmissionReceipt,
)
from ..telemetry.logger import RunLogger
from ..text.chunking import TextChunker
from ..tts.sse_client import SseEventClient, build_submission_payload, extract_result_refs
from ..tts.styles import resolve_style


def storage_key_for(episode_id: str) -> str:
    """Return the storage key of an episode's final audio."""

    return f"audio/{episode_id}.wav"


class GenerationOrchestrator:
    """Coordinate submission, polling, and finalization of generation jobs.

    Each `poll` call performs at most one provider event-stream read. Retry
    cadence belongs to the caller; see `pipeline.polling.wait_for_completion`.
    """

    def __init__(
        self,
        client: SseEventClient,
        job_store: JobRecordStore,
        storage: StorageSink,
        fetcher: HttpFetcher,
        *,
        chunker: TextChunker | None = None,
        chunk_threshold_chars: int | None = 800,
        voice_sample_url: str | None = None,
        merger: WavMerger | None = None,
        duration_calculator: DurationCalculator | None = None,
        hls_assembler: HlsAssembler | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.client = client
        self.job_store = job_store
        self.storage = storage
        self.fetcher = fetcher
        self.chunker = chunker or TextChunker(run_logger=run_logger)
        self.chunk_threshold_chars = chunk_threshold_chars
        self.voice_sample_url = voice_sample_url
        self.merger = merger or WavMerger(run_logger=run_logger)
        self.duration_calculator = duration_calculator or DurationCalculator(run_logger=run_logger)
        self.hls_assembler = hls_assembler or HlsAssembler(fetcher, run_logger=run_logger)
        self._run_logger = run_logger

    def submit(self, text: str, style: str, episode_id: str) -> SubmissionReceipt:
        """Submit narration text and persist a `pending` job record.

        Text longer than `chunk_threshold_chars` is split and each chunk is
        submitted as its own provider job, in playback order.

        Raises:
            ValueError: If `text` is blank or `style` is unknown.
            SubmissionError: If any provider submission fails. No job record
                is written in that case.
        """

        if not text.strip():
            raise ValueError("Narration text must be a non-empty string.")
        voice_style = resolve_style(style, self.voice_sample_url)
        chunk_texts = self._chunk_texts(text)

        self._log_stage_start("submit", episode_id=episode_id, chunks=len(chunk_texts))
        provider_job_ids = tuple(
            self.client.submit(build_submission_payload(chunk_text, voice_style))
            for chunk_text in chunk_texts
        )
        job = GenerationJob(
            episode_id=episode_id,
            provider_job_id=provider_job_ids[0],
            provider_job_ids=provider_job_ids,
            status=JobStatus.PENDING,
            style=voice_style.name,
            chunk_count=len(chunk_texts),
        )
        self.job_store.put(episode_id, job)
        self._log_stage_complete(
            "submit",
            episode_id=episode_id,
            provider_job_id=job.provider_job_id,
            chunks=job.chunk_count,
        )
        return SubmissionReceipt(
            episode_id=episode_id,
            provider_job_id=job.provider_job_id,
            provider_job_ids=provider_job_ids,
            chunk_count=job.chunk_count,
        )

    def get(self, episode_id: str) -> GenerationJob:
        """Return the stored job without contacting the provider.

        Raises:
            JobNotFoundError: If no job exists for `episode_id`.
        """

        job = self.job_store.get(episode_id)
        if job is None:
            raise JobNotFoundError(
                f"No generation job found for episode `{episode_id}`.",
                failure_kind="not_found",
            )
        return job

    def poll(self, episode_id: str) -> GenerationJob:
        """Advance one job by a single provider poll.

        Terminal jobs are returned unchanged. Provider errors and every
        exception raised while resolving audio end in a persisted `failed`
        record instead of propagating.

        Raises:
            JobNotFoundError: If no job exists for `episode_id`.
        """

        job = self.get(episode_id)
        if job.is_terminal:
            return job
        try:
            return self._advance(job)
        except Exception as exc:
            return self._fail(job, self._failure_message(exc), error_type=type(exc).__name__)

    def _advance(self, job: GenerationJob) -> GenerationJob:
        provider_job_id = job.pending_provider_job_id()
        if provider_job_id is not None:
            result = self.client.poll_once(provider_job_id)
            if result.is_processing:
                return replace(job, status=JobStatus.PROCESSING)
            if result.is_error:
                return self._fail(job, result.message or "Provider reported an error.")

            refs = extract_result_refs(result.data, self.client.base_url)
            if len(refs) > 1 and self._run_logger is not None:
                self._run_logger.log_warning(
                    "poll",
                    "extra_result_refs_ignored",
                    episode_id=job.episode_id,
                    refs=len(refs),
                )
            job = job.evolve(result_refs=(*job.result_refs, refs[0]))
            if job.pending_provider_job_id() is not None:
                job = job.evolve(status=JobStatus.PROCESSING)
                self.job_store.put(job.episode_id, job)
                return job

        return self._finalize(job)

    def _finalize(self, job: GenerationJob) -> GenerationJob:
        """Fetch every result, merge, measure, store, and mark the job completed."""

        self._log_stage_start("finalize", episode_id=job.episode_id, refs=len(job.result_refs))
        chunks = [self._fetch_result(ref) for ref in job.result_refs]
        audio = self.merger.merge(chunks)
        duration = self.duration_calculator.duration(
            audio, declared_seconds=declared_total_seconds(chunks)
        )
        storage_key = storage_key_for(job.episode_id)
        audio_url = self.storage.put(storage_key, audio)
        if self._run_logger is not None:
            self._run_logger.log_event(
                "storage", "stored", key=storage_key, size_bytes=len(audio)
            )

        completed = job.evolve(
            status=JobStatus.COMPLETED,
            audio_url=audio_url,
            storage_key=storage_key,
            duration_seconds=duration.seconds,
            duration_approximate=duration.approximate,
            file_size_bytes=len(audio),
            error_message=None,
        )
        self.job_store.put(completed.episode_id, completed)
        self._log_stage_complete(
            "finalize",
            episode_id=completed.episode_id,
            duration_seconds=duration.seconds,
            size_bytes=len(audio),
        )
        return completed

    def _fetch_result(self, ref: ResultRef) -> AudioChunk:
        if ref.is_playlist:
            return self.hls_assembler.assemble(ref.url)
        try:
            data = self.fetcher.get_bytes(ref.url)
        except ProviderHttpError as exc:
            raise PollError(
                f"Failed to download audio: {exc}",
                failure_kind=exc.failure_kind,
                status_code=exc.status_code,
            ) from exc
        if not data:
            raise MergeError(f"Downloaded audio from {ref.url} is empty.", failure_kind="empty_output")
        return AudioChunk(data=data)

    def _fail(
        self,
        job: GenerationJob,
        message: str,
        *,
        error_type: str = "ProviderError",
    ) -> GenerationJob:
        failed = job.evolve(status=JobStatus.FAILED, error_message=message)
        self.job_store.put(failed.episode_id, failed)
        if self._run_logger is not None:
            self._run_logger.log_stage_failure(
                "poll", error_type, episode_id=failed.episode_id
            )
        return failed

    def _chunk_texts(self, text: str) -> list[str]:
        threshold = self.chunk_threshold_chars
        if not threshold or len(text) <= threshold:
            return [text]
        return [chunk.text for chunk in self.chunker.chunk(text)]

    @staticmethod
    def _failure_message(exc: Exception) -> str:
        message = str(exc).strip()
        return message or type(exc).__name__

    def _log_stage_start(self, stage: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_stage_start(stage, **context)

    def _log_stage_complete(self, stage: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_stage_complete(stage, **context)
