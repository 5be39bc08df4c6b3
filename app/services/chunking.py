"""
Paragraph-aligned text chunking.

Splitting strategy:
  1. If the whole text fits the word budget → one chunk, returned verbatim.
  2. Otherwise split on runs of newlines into paragraphs and greedily pack
     paragraphs into chunks joined by a blank line.

A paragraph is never split, even when it alone exceeds the budget; such a
paragraph simply becomes an oversized chunk of its own.
"""
from __future__ import annotations

import dataclasses
import logging
import math
import re
from typing import List, Optional

from app.config import settings

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n"

_PARAGRAPH_SPLIT_RE = re.compile(r"\n+")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Chunk:
    """One paragraph-aligned slice of a document."""

    index: int
    text: str

    @property
    def word_count(self) -> int:
        return count_words(self.text)


# ---------------------------------------------------------------------------
# Counting helpers
# ---------------------------------------------------------------------------

def count_words(text: str) -> int:
    """Whitespace word count; empty or whitespace-only text counts as 0."""
    if not text or not text.strip():
        return 0
    return len(text.split())


def estimate_token_count(text: str) -> int:
    """Rough provider token estimate (≈ 4 characters per token)."""
    return math.ceil(len(text) / 4)


def _resolve_chunk_size(chunk_size: Optional[int]) -> int:
    size = settings.CHUNK_SIZE_WORDS if chunk_size is None else chunk_size
    if size <= 0:
        raise ValueError(f"chunk_size must be positive, got {size}")
    return size


def estimate_chunk_count(text: str, chunk_size: Optional[int] = None) -> int:
    """Number of chunks a text is expected to need, never less than 1."""
    size = _resolve_chunk_size(chunk_size)
    return max(1, math.ceil(count_words(text) / size))


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

def chunk_text(text: str, chunk_size: Optional[int] = None) -> List[Chunk]:
    """
    Split ``text`` into ordered, paragraph-aligned chunks.

    Args:
        text:       Source document text (not modified).
        chunk_size: Word budget per chunk; defaults to CHUNK_SIZE_WORDS.

    Returns:
        List of Chunk objects in source order.  An input within the budget
        (including the empty string) yields exactly one chunk equal to it.
    """
    size = _resolve_chunk_size(chunk_size)

    if count_words(text) <= size:
        return [Chunk(index=0, text=text)]

    pieces: List[str] = []
    current = ""
    current_words = 0

    for paragraph in _PARAGRAPH_SPLIT_RE.split(text):
        paragraph_words = count_words(paragraph)

        if current and current_words + paragraph_words > size:
            pieces.append(current)
            current = paragraph
            current_words = paragraph_words
            continue

        if current:
            current += CHUNK_SEPARATOR
        current += paragraph
        current_words += paragraph_words

    if current:
        pieces.append(current)

    chunks = [Chunk(index=i, text=piece) for i, piece in enumerate(pieces)]
    logger.info(
        "Split %d words into %d chunks (budget %d words)",
        count_words(text),
        len(chunks),
        size,
    )
    return chunks


# ---------------------------------------------------------------------------
# ChunkingService
# ---------------------------------------------------------------------------

class ChunkingService:
    """
    Settings-aware wrapper around the chunking functions.

    The same threshold decides both the chunk size and whether a document is
    "large", i.e. must go through chunk selection before processing.
    """

    def __init__(self, chunk_size: Optional[int] = None) -> None:
        self.chunk_size = _resolve_chunk_size(chunk_size)

    def chunk(self, text: str) -> List[Chunk]:
        return chunk_text(text, self.chunk_size)

    def estimate_chunks(self, text: str) -> int:
        return estimate_chunk_count(text, self.chunk_size)

    def requires_selection(self, text: str) -> bool:
        """True when the document exceeds the threshold and must not be auto-processed."""
        return count_words(text) > self.chunk_size

    @staticmethod
    def join(results: List[str]) -> str:
        """Join processed chunk texts the way the processor accumulates them."""
        return CHUNK_SEPARATOR.join(results)
