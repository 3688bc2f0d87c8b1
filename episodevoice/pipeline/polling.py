"""Caller-side bounded poll loop."""

from __future__ import annotations

from collections.abc import Callable
import time

from ..models.datatypes import GenerationJob
from .orchestrator import GenerationOrchestrator


def wait_for_completion(
    orchestrator: GenerationOrchestrator,
    episode_id: str,
    *,
    max_attempts: int = 20,
    interval_seconds: float = 15.0,
    initial_delay_seconds: float = 0.0,
    sleeper: Callable[[float], None] = time.sleep,
    on_attempt: Callable[[int, GenerationJob], None] | None = None,
) -> GenerationJob:
    """Poll until the job is terminal or `max_attempts` polls were made.

    Sleeps `interval_seconds` between attempts, never after the last one.

    Returns:
        The last job observed, which may still be non-terminal.
    """

    if max_attempts < 1:
        raise ValueError("`max_attempts` must be at least 1.")
    if interval_seconds < 0 or initial_delay_seconds < 0:
        raise ValueError("Poll delays must be non-negative.")

    if initial_delay_seconds > 0:
        sleeper(initial_delay_seconds)

    job = orchestrator.poll(episode_id)
    attempt = 1
    if on_attempt is not None:
        on_attempt(attempt, job)
    while not job.is_terminal and attempt < max_attempts:
        sleeper(interval_seconds)
        job = orchestrator.poll(episode_id)
        attempt += 1
        if on_attempt is not None:
            on_attempt(attempt, job)
    return job
