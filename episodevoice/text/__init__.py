"""Text preprocessing and segmentation components.

This package splits long narration text into provider-safe chunks before
submission to the TTS provider.
"""

from .chunking import ChunkingOptions, TextChunker

__all__ = ["ChunkingOptions", "TextChunker"]
