"""Final-audio storage sinks.

Responsibilities:
- Define the `put(key, data) -> url` collaborator interface.
- Provide a filesystem-backed reference sink.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from ..errors import StorageError


class StorageSink(Protocol):
    """Protocol for object storage used to persist final audio."""

    def put(self, key: str, data: bytes) -> str:
        """Persist `data` under `key` and return a retrievable URL."""


class FilesystemStorageSink:
    """Filesystem-backed storage sink rooted at one directory."""

    def __init__(self, root: Path, base_url: str | None = None) -> None:
        """Initialize the sink root and optional public base URL."""

        self.root = root
        self.base_url = base_url.rstrip("/") if base_url else None

    def put(self, key: str, data: bytes) -> str:
        """Write bytes to `root/key` and return their URL.

        Raises:
            StorageError: If the key escapes the root or the write fails.
        """

        relative = Path(key)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(
                f"Storage key `{key}` must be a relative path inside the storage root.",
                failure_kind="invalid_key",
            )
        path = self.root / relative
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(
                f"Failed to write `{key}`: {exc}",
                failure_kind="write_failed",
            ) from exc

        if self.base_url is not None:
            return f"{self.base_url}/{relative.as_posix()}"
        return path.resolve().as_uri()

    def exists(self, key: str) -> bool:
        """Return whether an object is stored under `key`."""

        return (self.root / key).exists()
