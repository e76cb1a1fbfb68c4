"""Document chunking.

Splits extracted document text into bounded-size units suitable for
embedding and retrieval, preferring paragraph boundaries, then sentence
boundaries, and only as a last resort hard word-count slices.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

PARAGRAPH_JOINER = "\n\n"
SENTENCE_JOINER = " "


@dataclass
class TextChunk:
    """A document chunk ready for embedding."""

    index: int
    text: str
    word_count: int
    char_count: int


@dataclass
class _Unit:
    text: str
    words: int
    # Separator placed before this unit when it joins a buffer
    joiner: str


def count_words(text: str) -> int:
    """Number of whitespace-delimited words in text."""
    if not text:
        return 0
    return len(text.split())


def _split_sentences(paragraph: str) -> list[str]:
    return [s.strip() for s in SENTENCE_BREAK.split(paragraph) if s.strip()]


def _hard_slices(sentence: str, slice_words: int) -> list[str]:
    words = sentence.split()
    return [" ".join(words[i : i + slice_words]) for i in range(0, len(words), slice_words)]


def _to_units(text: str, target_words: int, max_words: int) -> list[_Unit]:
    """Break text into paragraph, sentence or slice units no larger than max_words."""
    units: list[_Unit] = []
    slice_words = max(1, min(target_words, max_words))

    for paragraph in PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue

        words = count_words(paragraph)
        if words <= max_words:
            units.append(_Unit(paragraph, words, PARAGRAPH_JOINER))
            continue

        joiner = PARAGRAPH_JOINER
        for sentence in _split_sentences(paragraph):
            sentence_words = count_words(sentence)
            if sentence_words <= max_words:
                units.append(_Unit(sentence, sentence_words, joiner))
            else:
                for piece in _hard_slices(sentence, slice_words):
                    units.append(_Unit(piece, count_words(piece), joiner))
                    joiner = SENTENCE_JOINER
            joiner = SENTENCE_JOINER

    return units


def split_into_chunks(
    text: str,
    target_words: int = 800,
    min_words: int = 100,
    max_words: int = 1000,
) -> list[str]:
    """Split text into ordered chunks of roughly target_words words.

    Units are accumulated greedily; the buffer is flushed when the next unit
    would push it past target_words, unless it is still below min_words.
    A buffer never grows past max_words through accumulation, so only a
    single indivisible unit can exceed it. A short tail is merged into the
    previous chunk when the merge fits within max_words.

    Args:
        text: Extracted document text
        target_words: Preferred chunk size in words
        min_words: Chunks below this size keep accumulating
        max_words: Hard ceiling for accumulated chunks

    Returns:
        Ordered list of non-empty chunk strings (empty for blank input)
    """
    if not text or not text.strip():
        return []

    units = _to_units(text, target_words, max_words)

    chunks: list[str] = []
    chunk_words: list[int] = []
    buffer = ""
    buffer_words = 0

    def flush() -> None:
        nonlocal buffer, buffer_words
        if buffer:
            chunks.append(buffer)
            chunk_words.append(buffer_words)
        buffer = ""
        buffer_words = 0

    for unit in units:
        if buffer:
            combined = buffer_words + unit.words
            if combined > max_words or (combined > target_words and buffer_words >= min_words):
                flush()

        buffer = f"{buffer}{unit.joiner}{unit.text}" if buffer else unit.text
        buffer_words += unit.words

    # Merge a short tail into the previous chunk
    if buffer and buffer_words < min_words and chunks:
        if chunk_words[-1] + buffer_words <= max_words:
            chunks[-1] = f"{chunks[-1]}{PARAGRAPH_JOINER}{buffer}"
            chunk_words[-1] += buffer_words
            buffer = ""
            buffer_words = 0

    flush()

    return [c for c in chunks if c.strip()]


class ChunkingStrategy(ABC):
    """Base class for chunking strategies."""

    @abstractmethod
    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into chunks."""


class ParagraphSentenceChunker(ChunkingStrategy):
    """Paragraph-first chunking with sentence and word fallbacks."""

    def __init__(
        self,
        target_words: int = 800,
        min_words: int = 100,
        max_words: int = 1000,
    ):
        if not 0 < min_words <= target_words <= max_words:
            raise ValueError(
                f"Expected 0 < min_words <= target_words <= max_words, "
                f"got {min_words}/{target_words}/{max_words}"
            )
        self.target_words = target_words
        self.min_words = min_words
        self.max_words = max_words

    def split(self, text: str) -> list[str]:
        """Split text into chunk strings."""
        return split_into_chunks(
            text,
            target_words=self.target_words,
            min_words=self.min_words,
            max_words=self.max_words,
        )

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into indexed chunks with word/char counts."""
        return [
            TextChunk(index=i, text=piece, word_count=count_words(piece), char_count=len(piece))
            for i, piece in enumerate(self.split(text))
        ]


def get_chunker(**kwargs) -> ParagraphSentenceChunker:
    """Get a configured chunker.

    Args:
        **kwargs: target_words, min_words, max_words

    Returns:
        Configured chunking strategy
    """
    return ParagraphSentenceChunker(**kwargs)


__all__ = [
    "ChunkingStrategy",
    "ParagraphSentenceChunker",
    "TextChunk",
    "count_words",
    "get_chunker",
    "split_into_chunks",
]
