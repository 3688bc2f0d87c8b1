"""Generation job orchestration and caller-side polling."""

from .orchestrator import GenerationOrchestrator, storage_key_for
from .polling import wait_for_completion

__all__ = ["GenerationOrchestrator", "storage_key_for", "wait_for_completion"]
