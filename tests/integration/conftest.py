"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from episodevoice.io import http as http_module
from tests.fake_gradio import FakeGradioSpace


@pytest.fixture
def gradio_space(
    monkeypatch: pytest.MonkeyPatch, wav_factory: Callable[..., bytes]
) -> FakeGradioSpace:
    """Route every HTTP call through an in-memory Gradio space.

    Each provider job synthesizes one second of 8 kHz mono 16-bit audio.
    """

    space = FakeGradioSpace(lambda event_id: wav_factory(8000))
    monkeypatch.setattr(http_module.requests, "request", space)
    return space
