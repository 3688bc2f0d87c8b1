"""Keyed job record stores.

Responsibilities:
- Define the read/write collaborator interface for `GenerationJob` records.
- Provide JSON-file and in-memory reference implementations.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Protocol

from ..errors import StorageError
from ..models.datatypes import GenerationJob


class JobRecordStore(Protocol):
    """Protocol for job record persistence keyed by episode id."""

    def get(self, episode_id: str) -> GenerationJob | None:
        """Return the stored job, or `None` when absent."""

    def put(self, episode_id: str, job: GenerationJob) -> None:
        """Create or replace the stored job."""


class InMemoryJobStore:
    """Dictionary-backed job store."""

    def __init__(self) -> None:
        self._jobs: dict[str, GenerationJob] = {}

    def get(self, episode_id: str) -> GenerationJob | None:
        return self._jobs.get(episode_id)

    def put(self, episode_id: str, job: GenerationJob) -> None:
        self._jobs[episode_id] = job


class JsonFileJobStore:
    """Persist all job records in one JSON document.

    Writes go through a temporary file in the same directory followed by
    `os.replace`, so readers never observe a half-written document.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self, episode_id: str) -> GenerationJob | None:
        """Load one job record by episode id."""

        payload = self._load_all().get(episode_id)
        if payload is None:
            return None
        return GenerationJob.from_mapping(payload)

    def put(self, episode_id: str, job: GenerationJob) -> None:
        """Create or replace one job record."""

        records = self._load_all()
        records[episode_id] = job.to_mapping()
        self._write_all(records)

    def list_episode_ids(self) -> list[str]:
        """Return stored episode ids in sorted order."""

        return sorted(self._load_all().keys())

    def _load_all(self) -> dict[str, dict[str, object]]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(
                f"Failed to read job store `{self.path}`: {exc}",
                failure_kind="read_failed",
            ) from exc
        if not isinstance(payload, dict):
            raise StorageError(
                f"Job store `{self.path}` must contain a JSON object.",
                failure_kind="read_failed",
            )
        return payload

    def _write_all(self, records: dict[str, dict[str, object]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            descriptor, temp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=self.path.parent,
            )
            with os.fdopen(descriptor, "w", encoding="utf-8") as handle:
                json.dump(records, handle, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(temp_name, self.path)
        except OSError as exc:
            raise StorageError(
                f"Failed to write job store `{self.path}`: {exc}",
                failure_kind="write_failed",
            ) from exc
