"""Integration tests for CLI commands against an in-memory Gradio space."""

from __future__ import annotations

from collections.abc import Callable
import json
from pathlib import Path

from typer.testing import CliRunner

from episodevoice.cli import app
from tests.fake_gradio import FakeGradioSpace


def _write_text(tmp_path: Path, text: str = "Good evening. Here is the news.") -> Path:
    path = tmp_path / "episode.txt"
    path.write_text(text, encoding="utf-8")
    return path


def _provider_args(out_dir: Path, space: FakeGradioSpace) -> list[str]:
    return ["--out", str(out_dir), "--provider-url", space.base_url]


def _submit(runner: CliRunner, tmp_path: Path, space: FakeGradioSpace, *extra: str):  # type: ignore[no-untyped-def]
    return runner.invoke(
        app,
        [
            "submit",
            str(_write_text(tmp_path)),
            "--episode-id",
            "ep-1",
            *_provider_args(tmp_path / "out", space),
            *extra,
        ],
    )


def test_submit_poll_status_flow_stores_final_audio(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """Submit, poll, and status should drive one job to a stored result."""

    runner = CliRunner()

    submitted = _submit(runner, tmp_path, gradio_space)
    assert submitted.exit_code == 0, submitted.output
    assert "Episode id: ep-1" in submitted.output
    assert "Provider job id: evt-1" in submitted.output
    assert "Status: pending" in submitted.output
    assert gradio_space.submitted_texts == ["Good evening. Here is the news."]

    pending = runner.invoke(app, ["status", "ep-1", "--out", str(tmp_path / "out")])
    assert pending.exit_code == 0, pending.output
    assert "Status: pending" in pending.output

    polled = runner.invoke(app, ["poll", "ep-1", *_provider_args(tmp_path / "out", gradio_space)])
    assert polled.exit_code == 0, polled.output
    assert "Status: completed" in polled.output
    assert "Duration (s): 1" in polled.output

    stored = tmp_path / "out" / "storage" / "audio" / "ep-1.wav"
    assert stored.read_bytes() == gradio_space.audio_for("evt-1")
    assert stored.resolve().as_uri() in polled.output

    record = json.loads((tmp_path / "out" / "jobs.json").read_text(encoding="utf-8"))
    assert record["ep-1"]["status"] == "completed"
    assert record["ep-1"]["duration_seconds"] == 1

    final = runner.invoke(app, ["status", "ep-1", "--out", str(tmp_path / "out")])
    assert "Status: completed" in final.output
    assert "Stored audio: present" in final.output


def test_submit_uses_selected_style_and_voice_sample(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """Style and voice sample overrides should be reflected in the job record."""

    runner = CliRunner()

    result = _submit(
        runner,
        tmp_path,
        gradio_space,
        "--style",
        "guo-de-gang",
        "--voice-sample-url",
        "https://samples.test/me.mp3",
    )

    assert result.exit_code == 0, result.output
    record = json.loads((tmp_path / "out" / "jobs.json").read_text(encoding="utf-8"))
    assert record["ep-1"]["style"] == "guo-de-gang"
    voice_reference = gradio_space.submitted_payloads[0][1]
    assert voice_reference["url"] == "https://samples.test/me.mp3"
    assert gradio_space.submitted_payloads[0][4] == 0.9


def test_poll_reports_processing_then_provider_error(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """Not-ready streams should report processing; provider errors should fail the job."""

    runner = CliRunner()
    _submit(runner, tmp_path, gradio_space)
    gradio_space.pending_polls["evt-1"] = 1
    gradio_space.errors["evt-1"] = "GPU quota exceeded"

    processing = runner.invoke(
        app, ["poll", "ep-1", *_provider_args(tmp_path / "out", gradio_space)]
    )
    failed = runner.invoke(app, ["poll", "ep-1", *_provider_args(tmp_path / "out", gradio_space)])

    assert processing.exit_code == 0
    assert "Status: processing" in processing.output
    assert failed.exit_code == 1
    assert "Status: failed" in failed.output
    assert "Error: GPU quota exceeded" in failed.output


def test_wait_polls_until_completion(tmp_path: Path, gradio_space: FakeGradioSpace) -> None:
    """Wait should report each attempt and stop once the job completes."""

    runner = CliRunner()
    _submit(runner, tmp_path, gradio_space)
    gradio_space.pending_polls["evt-1"] = 2

    result = runner.invoke(
        app,
        [
            "wait",
            "ep-1",
            "--max-attempts",
            "5",
            "--interval",
            "0",
            *_provider_args(tmp_path / "out", gradio_space),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "[poll] attempt=1/5 status=processing" in result.output
    assert "[poll] attempt=3/5 status=completed" in result.output
    assert "attempt=4/5" not in result.output


def test_wait_reports_exhausted_attempts(tmp_path: Path, gradio_space: FakeGradioSpace) -> None:
    """Wait should fail with a poll-stage diagnostic when attempts run out."""

    runner = CliRunner()
    _submit(runner, tmp_path, gradio_space)
    gradio_space.pending_polls["evt-1"] = 10

    result = runner.invoke(
        app,
        [
            "wait",
            "ep-1",
            "--max-attempts",
            "2",
            "--interval",
            "0",
            *_provider_args(tmp_path / "out", gradio_space),
        ],
    )

    assert result.exit_code == 1
    assert "wait failed at stage `poll`" in result.output
    assert "still `processing` after 2 attempt(s)" in result.output


def test_poll_unknown_episode_fails(tmp_path: Path, gradio_space: FakeGradioSpace) -> None:
    """Polling an unknown episode should fail without contacting the provider."""

    result = CliRunner().invoke(
        app, ["poll", "missing", *_provider_args(tmp_path / "out", gradio_space)]
    )

    assert result.exit_code == 1
    assert "poll failed: No generation job found for episode `missing`." in result.output
    assert gradio_space.requests == []


def test_status_unknown_episode_reports_stage_error(tmp_path: Path) -> None:
    """Status should point users at `submit` when no record exists."""

    result = CliRunner().invoke(app, ["status", "nope", "--out", str(tmp_path)])

    assert result.exit_code == 1
    assert "status failed at stage `status`" in result.output
    assert "Hint: Submit the episode first" in result.output


def test_status_without_episode_lists_stored_jobs(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """Status without an episode id should list every stored job."""

    runner = CliRunner()
    out_dir = tmp_path / "out"

    empty = runner.invoke(app, ["status", "--out", str(out_dir)])
    _submit(runner, tmp_path, gradio_space)
    listed = runner.invoke(app, ["status", "--out", str(out_dir)])

    assert empty.exit_code == 0, empty.output
    assert "No generation jobs stored." in empty.output
    assert listed.exit_code == 0, listed.output
    assert "ep-1: pending results=0/1" in listed.output


def test_status_reports_missing_stored_audio(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """A completed job whose audio file was removed should be flagged."""

    runner = CliRunner()
    out_dir = tmp_path / "out"
    _submit(runner, tmp_path, gradio_space)
    runner.invoke(app, ["poll", "ep-1", *_provider_args(out_dir, gradio_space)])
    (out_dir / "storage" / "audio" / "ep-1.wav").unlink()

    result = runner.invoke(app, ["status", "ep-1", "--out", str(out_dir)])

    assert result.exit_code == 0, result.output
    assert "Status: completed" in result.output
    assert "Stored audio: missing" in result.output


def test_submit_authorizes_provider_calls_with_cli_api_key(
    tmp_path: Path, gradio_space: FakeGradioSpace, credential_store
) -> None:  # type: ignore[no-untyped-def]
    """A CLI API key should authorize provider calls and be stored securely."""

    runner = CliRunner()

    result = _submit(runner, tmp_path, gradio_space, "--api-key", "hf_secret_token")

    assert result.exit_code == 0, result.output
    method, url, headers = gradio_space.requests[0]
    assert (method, url) == ("POST", gradio_space.call_url)
    assert headers["Authorization"] == "Bearer hf_secret_token"
    assert credential_store.get_api_key() == "hf_secret_token"
    assert "hf_secret_token" not in result.output


def test_submit_reports_missing_config_file(tmp_path: Path) -> None:
    """Submit should fail with stage-aware diagnostics when `--config` is missing."""

    result = CliRunner().invoke(
        app,
        [
            "submit",
            str(_write_text(tmp_path)),
            "--episode-id",
            "ep-1",
            "--config",
            "missing-episodevoice.yaml",
        ],
    )

    assert result.exit_code == 1
    assert "submit failed at stage `config`" in result.output
    assert "Config file not found: `missing-episodevoice.yaml`." in result.output


def test_submit_rejects_unknown_style(tmp_path: Path, gradio_space: FakeGradioSpace) -> None:
    """Unknown styles should fail before any provider request."""

    result = _submit(CliRunner(), tmp_path, gradio_space, "--style", "opera")

    assert result.exit_code == 1
    assert "Unknown voice style `opera`" in result.output
    assert gradio_space.requests == []


def test_submit_reports_missing_input_file(tmp_path: Path) -> None:
    """A missing text file should be reported at the input stage."""

    result = CliRunner().invoke(
        app, ["submit", str(tmp_path / "absent.txt"), "--episode-id", "ep-1"]
    )

    assert result.exit_code == 1
    assert "submit failed at stage `input`" in result.output


def test_chunk_command_prints_table(tmp_path: Path) -> None:
    """Chunk should print one row per chunk and the coverage summary."""

    text_path = tmp_path / "long.txt"
    text_path.write_text(" ".join(f"w{index}" for index in range(25)), encoding="utf-8")

    result = CliRunner().invoke(
        app, ["chunk", str(text_path), "--max-words", "10", "--overlap", "0"]
    )

    assert result.exit_code == 0, result.output
    assert "1. words=10" in result.output
    assert "3. words=5" in result.output
    assert "Chunks: 3" in result.output
    assert "Valid: yes" in result.output


def test_merge_wav_command_writes_merged_file(
    tmp_path: Path, wav_factory: Callable[..., bytes]
) -> None:
    """Merge-wav should write one WAV whose duration sums its inputs."""

    inputs = []
    for index, frames in enumerate((8000, 8000, 4000)):
        path = tmp_path / f"part{index}.wav"
        path.write_bytes(wav_factory(frames))
        inputs.append(str(path))
    output = tmp_path / "merged" / "episode.wav"

    result = CliRunner().invoke(app, ["merge-wav", *inputs, "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "Duration (s): 3" in result.output
    assert output.stat().st_size == 44 + (8000 + 8000 + 4000) * 2


def test_merge_wav_command_reports_format_mismatch(
    tmp_path: Path, wav_factory: Callable[..., bytes]
) -> None:
    """Mismatched inputs should fail with exit code 1."""

    first = tmp_path / "a.wav"
    second = tmp_path / "b.wav"
    first.write_bytes(wav_factory(100, sample_rate=8000))
    second.write_bytes(wav_factory(100, sample_rate=22050))

    result = CliRunner().invoke(
        app, ["merge-wav", str(first), str(second), "-o", str(tmp_path / "m.wav")]
    )

    assert result.exit_code == 1
    assert "merge-wav failed:" in result.output
    assert not (tmp_path / "m.wav").exists()


def test_credentials_command_set_status_clear(monkeypatch, credential_store) -> None:  # type: ignore[no-untyped-def]
    """Credentials command should store, report, and clear the API key."""

    monkeypatch.setattr("episodevoice.cli_runtime.typer.prompt", lambda *a, **k: " hf_key ")
    runner = CliRunner()

    stored = runner.invoke(app, ["credentials", "--set-api-key"])
    assert stored.exit_code == 0
    assert "API key stored in secure credential storage." in stored.output
    assert credential_store.get_api_key() == "hf_key"

    status = runner.invoke(app, ["credentials"])
    assert "Stored provider API key: present" in status.output
    assert "Keyring backend: memory" in status.output

    cleared = runner.invoke(app, ["credentials", "--clear-api-key"])
    assert "Stored API key cleared" in cleared.output
    assert credential_store.get_api_key() is None


def test_credentials_command_rejects_conflicting_flags() -> None:
    """Set and clear cannot be combined."""

    result = CliRunner().invoke(app, ["credentials", "--set-api-key", "--clear-api-key"])

    assert result.exit_code == 1
    assert "cannot be used together" in result.output


def test_assemble_hls_command_concatenates_segments(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """Assemble-hls should write the in-order concatenation of playlist segments."""

    runner = CliRunner()
    _submit(runner, tmp_path, gradio_space)
    playlist_url = f"{gradio_space.base_url}/gradio_api/file=/tmp/gradio/evt-1/playlist.m3u8"
    output = tmp_path / "hls" / "episode.wav"

    result = runner.invoke(app, ["assemble-hls", playlist_url, "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert output.read_bytes() == gradio_space.audio_for("evt-1")
    assert f"File size (bytes): {output.stat().st_size}" in result.output
    assert "Declared duration (s): 2.0" in result.output


def test_assemble_hls_command_reports_missing_playlist(
    tmp_path: Path, gradio_space: FakeGradioSpace
) -> None:
    """An unreachable playlist should fail without writing output."""

    output = tmp_path / "episode.wav"
    result = CliRunner().invoke(
        app,
        [
            "assemble-hls",
            f"{gradio_space.base_url}/gradio_api/file=/tmp/gradio/evt-9/playlist.m3u8",
            "-o",
            str(output),
        ],
    )

    assert result.exit_code == 1
    assert "assemble-hls failed" in result.output
    assert not output.exists()
