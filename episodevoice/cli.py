"""Command-line interface for episodevoice.

Responsibilities:
- Expose user-facing commands for submission, polling, and local audio tools.
- Convert CLI arguments into `EpisodeVoiceConfig` and wire the orchestrator.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer

from .audio.duration import DurationCalculator
from .audio.hls import HlsAssembler
from .audio.merger import WavMerger
from .cli_rendering import (
    echo_chunk_table,
    echo_job,
    echo_job_list,
    echo_receipt,
    exit_with_command_error,
)
from .cli_runtime import prompt_hidden_api_key, resolve_provider_runtime_sources
from .config import ConfigLoader, EpisodeVoiceConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.http import HttpFetcher
from .io.job_store import JsonFileJobStore
from .io.storage import FilesystemStorageSink
from .models.datatypes import AudioChunk, GenerationJob, JobStatus
from .pipeline import GenerationOrchestrator, wait_for_completion
from .telemetry.logger import RunLogger
from .text.chunking import ChunkingOptions, TextChunker
from .tts.sse_client import SseEventClient

app = typer.Typer(
    name="episodevoice",
    no_args_is_help=True,
    help="Narrated episode audio generation through an async TTS provider.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
OutOption = Annotated[
    Path | None,
    typer.Option("--out", help="Output directory (overrides config file value)."),
]
ProviderUrlOption = Annotated[
    str | None,
    typer.Option("--provider-url", help="Provider base URL override."),
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option(
        "--api-key",
        help="Provider API key override. Prefer `--prompt-api-key` to avoid shell history.",
    ),
]
PromptApiKeyOption = Annotated[
    bool,
    typer.Option("--prompt-api-key", help="Prompt for API key with hidden input (never echoed)."),
]
StoreApiKeyOption = Annotated[
    bool,
    typer.Option(
        "--store-api-key/--no-store-api-key",
        help="Persist CLI-entered API key to secure credential storage.",
    ),
]


def _read_text_file(path: Path, stage: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage=stage,
            detail=f"Input file not found: `{path}`.",
            hint="Provide an existing UTF-8 text file.",
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise PipelineStageError(
            stage=stage,
            detail=f"Failed to read `{path}`: {exc}",
            hint="Verify file permissions and UTF-8 encoding.",
        ) from exc


def _load_config(config_path: Path | None, out: Path | None) -> EpisodeVoiceConfig:
    """Load YAML or environment config and map failures to stage errors."""

    try:
        if config_path is None:
            config = ConfigLoader.from_env()
        else:
            config = ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid configuration: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc

    if out is not None:
        config.output_dir = out
    return config


def _apply_runtime_sources(
    config: EpisodeVoiceConfig,
    provider_url: str | None,
    voice_style: str | None,
    voice_sample_url: str | None,
    api_key: str | None,
    prompt_api_key: bool,
    store_api_key: bool,
) -> EpisodeVoiceConfig:
    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        provider_base_url=provider_url,
        voice_style=voice_style,
        voice_sample_url=voice_sample_url,
        api_key=api_key,
        prompt_api_key=prompt_api_key,
        store_api_key=store_api_key,
        credential_store_factory=create_credential_store,
    )
    config.runtime_sources = RuntimeConfigSources(
        cli=runtime_cli_values,
        secure=runtime_secure_values,
        env=os.environ,
    )
    return config


def _build_orchestrator(
    config: EpisodeVoiceConfig, run_logger: RunLogger
) -> GenerationOrchestrator:
    """Wire provider client, stores, and audio stages for one command run."""

    try:
        runtime = config.resolved_provider_runtime()
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid provider settings: {exc}",
            hint="Check `--provider-url`, `--style`, and EPISODEVOICE_* variables.",
        ) from exc

    fetcher = HttpFetcher(
        timeout_seconds=config.request_timeout_seconds,
        api_key=runtime.api_key,
        auth_base_url=runtime.base_url,
    )
    client = SseEventClient(
        fetcher,
        base_url=runtime.base_url,
        api_name=runtime.api_name,
        run_logger=run_logger,
    )
    return GenerationOrchestrator(
        client,
        JsonFileJobStore(config.jobs_path),
        FilesystemStorageSink(config.storage_root, config.storage_base_url),
        fetcher,
        chunker=TextChunker(config.chunking_options(), run_logger=run_logger),
        chunk_threshold_chars=config.chunk_threshold_chars,
        voice_sample_url=runtime.voice_sample_url,
        run_logger=run_logger,
    )


def _exit_if_failed(job: GenerationJob) -> None:
    if job.status is JobStatus.FAILED:
        raise typer.Exit(code=1)


@app.command("submit")
def submit_command(
    text_file: Annotated[Path, typer.Argument(help="UTF-8 text file with narration text.")],
    episode_id: Annotated[
        str, typer.Option("--episode-id", help="Caller-owned key of the job record.")
    ],
    style: Annotated[
        str | None,
        typer.Option("--style", help="Voice style name (for example `news-anchor`)."),
    ] = None,
    voice_sample_url: Annotated[
        str | None,
        typer.Option("--voice-sample-url", help="Override the style's voice sample URL."),
    ] = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
    provider_url: ProviderUrlOption = None,
    api_key: ApiKeyOption = None,
    prompt_api_key: PromptApiKeyOption = False,
    store_api_key: StoreApiKeyOption = True,
) -> None:
    """Submit narration text and record a pending job."""

    try:
        text = _read_text_file(text_file, stage="input")
        config = _apply_runtime_sources(
            _load_config(config_file, out),
            provider_url=provider_url,
            voice_style=style,
            voice_sample_url=voice_sample_url,
            api_key=api_key,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
        )
        orchestrator = _build_orchestrator(config, RunLogger())
        voice_style = config.resolved_provider_runtime().voice_style
        receipt = orchestrator.submit(text, voice_style, episode_id)
    except Exception as exc:
        exit_with_command_error("submit", exc)

    echo_receipt(receipt)


@app.command("poll")
def poll_command(
    episode_id: Annotated[str, typer.Argument(help="Episode id used at submission.")],
    config_file: ConfigOption = None,
    out: OutOption = None,
    provider_url: ProviderUrlOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """Poll the provider once and print the job status."""

    try:
        config = _apply_runtime_sources(
            _load_config(config_file, out),
            provider_url=provider_url,
            voice_style=None,
            voice_sample_url=None,
            api_key=api_key,
            prompt_api_key=False,
            store_api_key=False,
        )
        job = _build_orchestrator(config, RunLogger()).poll(episode_id)
    except Exception as exc:
        exit_with_command_error("poll", exc)

    echo_job(job)
    _exit_if_failed(job)


@app.command("wait")
def wait_command(
    episode_id: Annotated[str, typer.Argument(help="Episode id used at submission.")],
    max_attempts: Annotated[
        int | None,
        typer.Option("--max-attempts", min=1, help="Poll attempt bound (overrides config)."),
    ] = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", min=0.0, help="Seconds between polls (overrides config)."),
    ] = None,
    initial_delay: Annotated[
        float,
        typer.Option("--initial-delay", min=0.0, help="Seconds to wait before the first poll."),
    ] = 0.0,
    config_file: ConfigOption = None,
    out: OutOption = None,
    provider_url: ProviderUrlOption = None,
    api_key: ApiKeyOption = None,
) -> None:
    """Poll with a fixed interval until the job finishes or attempts run out."""

    try:
        config = _apply_runtime_sources(
            _load_config(config_file, out),
            provider_url=provider_url,
            voice_style=None,
            voice_sample_url=None,
            api_key=api_key,
            prompt_api_key=False,
            store_api_key=False,
        )
        orchestrator = _build_orchestrator(config, RunLogger())
        attempts = max_attempts if max_attempts is not None else config.poll_max_attempts

        def _report(attempt: int, job: GenerationJob) -> None:
            typer.echo(f"[poll] attempt={attempt}/{attempts} status={job.status.value}")

        job = wait_for_completion(
            orchestrator,
            episode_id,
            max_attempts=attempts,
            interval_seconds=interval if interval is not None else config.poll_interval_seconds,
            initial_delay_seconds=initial_delay,
            on_attempt=_report,
        )
    except Exception as exc:
        exit_with_command_error("wait", exc)

    echo_job(job)
    _exit_if_failed(job)
    if not job.is_terminal:
        exit_with_command_error(
            "wait",
            PipelineStageError(
                stage="poll",
                detail=f"Job is still `{job.status.value}` after {attempts} attempt(s).",
                hint="Run `episodevoice wait` again later; the provider job keeps running.",
            ),
        )


@app.command("status")
def status_command(
    episode_id: Annotated[
        str | None,
        typer.Argument(help="Episode id used at submission. Omit to list stored jobs."),
    ] = None,
    config_file: ConfigOption = None,
    out: OutOption = None,
) -> None:
    """Show stored job records without contacting the provider."""

    try:
        config = _load_config(config_file, out)
        job_store = JsonFileJobStore(config.jobs_path)
        if episode_id is None:
            jobs = [job_store.get(stored_id) for stored_id in job_store.list_episode_ids()]
        else:
            job = job_store.get(episode_id)
            if job is None:
                raise PipelineStageError(
                    stage="status",
                    detail=f"No generation job found for episode `{episode_id}`.",
                    hint="Submit the episode first with `episodevoice submit`.",
                )
            storage = FilesystemStorageSink(config.storage_root, config.storage_base_url)
            audio_present = (
                storage.exists(job.storage_key) if job.storage_key is not None else None
            )
    except Exception as exc:
        exit_with_command_error("status", exc)

    if episode_id is None:
        echo_job_list([job for job in jobs if job is not None])
        return

    echo_job(job)
    if audio_present is not None:
        typer.echo(f"Stored audio: {'present' if audio_present else 'missing'}")


@app.command("chunk")
def chunk_command(
    text_file: Annotated[Path, typer.Argument(help="UTF-8 text file to split.")],
    max_words: Annotated[
        int | None, typer.Option("--max-words", min=1, help="Word limit per chunk.")
    ] = None,
    max_chars: Annotated[
        int | None, typer.Option("--max-chars", min=1, help="Character limit per chunk.")
    ] = None,
    overlap: Annotated[
        int | None, typer.Option("--overlap", min=0, help="Overlap words between chunks.")
    ] = None,
    sentence_breaks: Annotated[
        bool | None,
        typer.Option(
            "--sentence-breaks/--no-sentence-breaks",
            help="Close chunks right after sentence punctuation.",
        ),
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Print the chunk table and coverage check for a text file."""

    try:
        text = _read_text_file(text_file, stage="input")
        defaults = (
            _load_config(config_file, None).chunking_options()
            if config_file is not None
            else ChunkingOptions()
        )
        options = ChunkingOptions(
            max_words_per_chunk=max_words if max_words is not None else defaults.max_words_per_chunk,
            max_chars_per_chunk=max_chars if max_chars is not None else defaults.max_chars_per_chunk,
            prefer_sentence_breaks=(
                sentence_breaks if sentence_breaks is not None else defaults.prefer_sentence_breaks
            ),
            overlap_words=overlap if overlap is not None else defaults.overlap_words,
        )
        chunker = TextChunker(options)
        chunks = chunker.chunk(text)
        validation = chunker.validate(chunks, text)
    except Exception as exc:
        exit_with_command_error("chunk", exc)

    echo_chunk_table(chunks, validation)


@app.command("merge-wav")
def merge_wav_command(
    inputs: Annotated[list[Path], typer.Argument(help="WAV files in playback order.")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Merged WAV output path.")],
) -> None:
    """Merge local WAV files into one file with a rebuilt header."""

    try:
        run_logger = RunLogger()
        chunks = [AudioChunk(data=path.read_bytes()) for path in inputs]
        merged = WavMerger(run_logger=run_logger).merge(chunks)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(merged)
        duration = DurationCalculator(run_logger=run_logger).duration(merged)
    except Exception as exc:
        exit_with_command_error("merge-wav", exc)

    suffix = " (approximate)" if duration.approximate else ""
    typer.echo(f"Merged audio: {output}")
    typer.echo(f"Duration (s): {duration.seconds}{suffix}")
    typer.echo(f"File size (bytes): {len(merged)}")


@app.command("assemble-hls")
def assemble_hls_command(
    playlist_url: Annotated[str, typer.Argument(help="URL of the `.m3u8` playlist.")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Assembled output path.")],
    timeout: Annotated[
        float, typer.Option("--timeout", min=1.0, help="Per-request timeout in seconds.")
    ] = 120.0,
) -> None:
    """Download playlist segments in order and write their concatenation."""

    try:
        assembler = HlsAssembler(HttpFetcher(timeout_seconds=timeout), run_logger=RunLogger())
        assembled = assembler.assemble(playlist_url)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(assembled.data)
    except Exception as exc:
        exit_with_command_error("assemble-hls", exc)

    typer.echo(f"Assembled audio: {output}")
    typer.echo(f"File size (bytes): {len(assembled.data)}")
    if assembled.declared_duration_seconds is not None:
        typer.echo(f"Declared duration (s): {assembled.declared_duration_seconds:.1f}")


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = prompt_hidden_api_key("Provider API key (hidden input)")
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        removed = credential_store.clear_api_key()
        if removed:
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Keyring backend: {credential_store.backend_name()}")
    typer.echo(f"Stored provider API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
