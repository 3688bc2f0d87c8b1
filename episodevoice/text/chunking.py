"""Long-text to provider-safe chunk segmentation.

Responsibilities:
- Split input text into word-bounded chunks that respect provider word/char limits.
- Prefer closing chunks at sentence ends and repeat trailing words across joins.
- Report coverage so callers can verify no words were dropped.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.datatypes import ChunkValidation, TextChunk
from ..telemetry.logger import RunLogger


@dataclass(frozen=True, slots=True)
class ChunkingOptions:
    """Limits and boundary preferences for one chunking call.

    Attributes:
        max_words_per_chunk: Upper bound on words per chunk, overlap included.
        max_chars_per_chunk: Upper bound on space-joined characters per chunk.
        prefer_sentence_breaks: Close chunks right after sentence punctuation.
        overlap_words: Trailing words of the previous chunk repeated at each chunk start.
    """

    max_words_per_chunk: int = 100
    max_chars_per_chunk: int = 800
    prefer_sentence_breaks: bool = True
    overlap_words: int = 5


class TextChunker:
    """Create overlapping, sentence-aware chunks from long narration text."""

    _SENTENCE_TERMINATORS = (".", "!", "?")

    def __init__(
        self,
        options: ChunkingOptions | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self.options = options or ChunkingOptions()
        self._run_logger = run_logger

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into ordered chunks.

        Each chunk starts with up to `overlap_words` words already spoken at the
        end of the previous chunk, which gives the synthesis model prosodic
        context at the join.

        Args:
            text: Source narration text.

        Returns:
            Chunks in playback order. Empty or whitespace-only text yields one
            chunk holding `text` verbatim.
        """

        words = text.split()
        if not text or not words:
            return [
                TextChunk(
                    text=text,
                    start_word=0,
                    end_word=0,
                    word_count=len(words),
                    char_count=len(text),
                )
            ]

        options = self.options
        overlap = max(0, options.overlap_words)
        chunks: list[TextChunk] = []
        word_index = 0

        while word_index < len(words):
            chunk_start = max(0, word_index - overlap)
            current = words[chunk_start:word_index]
            first_new_word = word_index

            while word_index < len(words):
                candidate = [*current, words[word_index]]
                candidate_chars = len(" ".join(candidate))
                if (
                    len(candidate) > options.max_words_per_chunk
                    or candidate_chars > options.max_chars_per_chunk
                ):
                    # Force progress on a lone oversized token or an overlap-only chunk.
                    if len(current) <= 1 or word_index == first_new_word:
                        current = candidate
                        word_index += 1
                    break

                current = candidate
                word_index += 1
                if options.prefer_sentence_breaks and self._is_sentence_end(
                    words[word_index - 1]
                ):
                    break

            if current:
                chunk_text = " ".join(current)
                chunks.append(
                    TextChunk(
                        text=chunk_text,
                        start_word=max(0, word_index - len(current) - overlap),
                        end_word=word_index - 1,
                        word_count=len(current),
                        char_count=len(chunk_text),
                    )
                )

        if self._run_logger is not None:
            self._run_logger.log_event(
                "chunk",
                "split",
                words=len(words),
                chunks=len(chunks),
                max_words=options.max_words_per_chunk,
                max_chars=options.max_chars_per_chunk,
            )
        return chunks

    def validate(self, chunks: list[TextChunk], original_text: str) -> ChunkValidation:
        """Compare chunk word totals against the original word count.

        Overlap is counted per join from the words each chunk actually
        repeats, which is fewer than `overlap_words` after a short chunk. The
        check allows a tolerance of one word per chunk.
        """

        original_word_count = len(original_text.split())
        total_chunk_words = sum(chunk.word_count for chunk in chunks)
        total_overlap_words = sum(
            max(0, chunk.word_count - (chunk.end_word - previous.end_word))
            for previous, chunk in zip(chunks, chunks[1:])
        )
        chunk_count = len(chunks)
        coverage = (
            total_chunk_words / float(original_word_count) if original_word_count else 0.0
        )
        drift = abs(total_chunk_words - total_overlap_words - original_word_count)
        return ChunkValidation(
            original_word_count=original_word_count,
            total_chunk_words=total_chunk_words,
            total_overlap_words=total_overlap_words,
            chunk_count=chunk_count,
            coverage=coverage,
            is_valid=drift <= chunk_count,
        )

    @staticmethod
    def estimate_duration(text: str, words_per_minute: float = 150.0) -> float:
        """Estimate spoken duration of `text` in seconds at a fixed speaking rate."""

        if words_per_minute <= 0:
            raise ValueError("`words_per_minute` must be positive.")
        return len(text.split()) / words_per_minute * 60.0

    def _is_sentence_end(self, word: str) -> bool:
        """Return whether a word ends or contains sentence punctuation."""

        return any(terminator in word for terminator in self._SENTENCE_TERMINATORS)
