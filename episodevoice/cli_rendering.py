"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
submission receipts, job records, and chunk tables.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import PipelineStageError
from .models.datatypes import ChunkValidation, GenerationJob, SubmissionReceipt, TextChunk
from .text.chunking import TextChunker

_CHUNK_PREVIEW_CHARS = 48


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_receipt(receipt: SubmissionReceipt) -> None:
    """Print identifiers returned by a successful submission."""

    typer.echo(f"Episode id: {receipt.episode_id}")
    typer.echo(f"Provider job id: {receipt.provider_job_id}")
    typer.echo(f"Chunks submitted: {receipt.chunk_count}")
    typer.echo("Status: pending")


def echo_job(job: GenerationJob) -> None:
    """Print job status and whichever result fields are populated."""

    typer.echo(f"Episode id: {job.episode_id}")
    typer.echo(f"Status: {job.status.value}")
    typer.echo(f"Results received: {len(job.result_refs)}/{job.chunk_count}")
    if job.audio_url:
        typer.echo(f"Audio URL: {job.audio_url}")
    if job.duration_seconds is not None:
        suffix = " (approximate)" if job.duration_approximate else ""
        typer.echo(f"Duration (s): {job.duration_seconds}{suffix}")
    if job.file_size_bytes is not None:
        typer.echo(f"File size (bytes): {job.file_size_bytes}")
    if job.error_message:
        typer.echo(f"Error: {job.error_message}")


def echo_job_list(jobs: list[GenerationJob]) -> None:
    """Print one line per stored job, or a note when the store is empty."""

    if not jobs:
        typer.echo("No generation jobs stored.")
        return
    for job in jobs:
        typer.echo(
            f"{job.episode_id}: {job.status.value} "
            f"results={len(job.result_refs)}/{job.chunk_count} updated={job.updated_at}"
        )


def echo_chunk_table(chunks: list[TextChunk], validation: ChunkValidation) -> None:
    """Print one row per chunk followed by the coverage summary."""

    for index, chunk in enumerate(chunks, start=1):
        preview = chunk.text[:_CHUNK_PREVIEW_CHARS]
        if len(chunk.text) > _CHUNK_PREVIEW_CHARS:
            preview = f"{preview}..."
        typer.echo(
            f"{index}. words={chunk.word_count} chars={chunk.char_count} "
            f"range={chunk.start_word}-{chunk.end_word} | {preview}"
        )
    typer.echo(f"Chunks: {validation.chunk_count}")
    typer.echo(f"Coverage: {validation.coverage:.2f}")
    typer.echo(f"Valid: {'yes' if validation.is_valid else 'no'}")
    estimated = sum(TextChunker.estimate_duration(chunk.text) for chunk in chunks)
    typer.echo(f"Estimated speech (s): {estimated:.1f}")
