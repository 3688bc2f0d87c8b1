"""episodevoice package.

Narrated episode audio generation through an asynchronous, Gradio-hosted TTS
provider: text chunking, one-shot event-stream polling, HLS assembly, and WAV
merging with true duration.
"""

from .config import EpisodeVoiceConfig
from .pipeline import GenerationOrchestrator, wait_for_completion

__all__ = ["EpisodeVoiceConfig", "GenerationOrchestrator", "wait_for_completion"]
__version__ = "0.1.0"
