"""
Server-side helpers backing the chunk selection UI.

The interactive picker lives in the browser; this module provides the pure
operations it relies on (search filter, pagination, pattern and range
selection, stats) and validates the final Selection before it is handed to
the SequentialProcessor.
"""
from __future__ import annotations

import dataclasses
import math
from typing import Generic, Iterable, List, Sequence, Tuple, TypeVar

from app.services.chunking import Chunk, count_words

T = TypeVar("T")

PATTERNS = ("all", "none", "first10", "last10", "every3rd", "every5th", "bookends", "distributed")


class SelectionError(ValueError):
    """Raised for empty, out-of-range or otherwise unusable selections."""


@dataclasses.dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total_items: int
    total_pages: int


@dataclasses.dataclass
class ChunkStats:
    total_chunks: int
    total_words: int
    avg_words: int
    min_words: int
    max_words: int


# ---------------------------------------------------------------------------
# Selection validation
# ---------------------------------------------------------------------------

def normalize_selection(indices: Iterable[int], total_chunks: int) -> Tuple[int, ...]:
    """
    Validate a selection and return it as unique indices in ascending order.

    Selection is a filter, not a sequence: whatever order the user picked
    chunks in, processing always follows chunk index order.
    """
    unique = sorted(set(indices))
    if not unique:
        raise SelectionError("No chunks selected")

    out_of_range = [i for i in unique if i < 0 or i >= total_chunks]
    if out_of_range:
        raise SelectionError(
            f"Chunk indices out of range [0, {total_chunks}): {out_of_range}"
        )
    return tuple(unique)


# ---------------------------------------------------------------------------
# Browsing helpers
# ---------------------------------------------------------------------------

def filter_chunks(chunks: Sequence[Chunk], search_term: str = "") -> List[Chunk]:
    """Case-insensitive text search; a chunk also matches on its index."""
    term = search_term.strip().lower()
    if not term:
        return list(chunks)
    return [
        chunk for chunk in chunks
        if term in chunk.text.lower() or term in str(chunk.index)
    ]


def paginate(items: Sequence[T], page: int = 1, page_size: int = 10) -> Page[T]:
    """1-based pagination; out-of-range pages are clamped."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    total_items = len(items)
    total_pages = max(1, math.ceil(total_items / page_size))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )


def preview(text: str, length: int = 150) -> str:
    snippet = text[:length].strip()
    return snippet + ("..." if len(text) > length else "")


def chunk_stats(chunks: Sequence[Chunk]) -> ChunkStats:
    counts = [count_words(c.text) for c in chunks]
    if not counts:
        return ChunkStats(0, 0, 0, 0, 0)
    total = sum(counts)
    return ChunkStats(
        total_chunks=len(counts),
        total_words=total,
        avg_words=round(total / len(counts)),
        min_words=min(counts),
        max_words=max(counts),
    )


# ---------------------------------------------------------------------------
# Pattern / range selection
# ---------------------------------------------------------------------------

def select_pattern(pattern: str, total_chunks: int) -> List[int]:
    """Resolve a named quick-selection pattern to chunk indices."""
    n = total_chunks
    if pattern == "all":
        return list(range(n))
    if pattern == "none":
        return []
    if pattern == "first10":
        return list(range(min(10, n)))
    if pattern == "last10":
        return list(range(max(0, n - 10), n))
    if pattern == "every3rd":
        return [i for i in range(n) if i % 3 == 0]
    if pattern == "every5th":
        return [i for i in range(n) if i % 5 == 0]
    if pattern == "bookends":
        first = list(range(min(3, n)))
        last = [] if n <= 6 else list(range(n - 3, n))
        return first + last
    if pattern == "distributed":
        if n <= 10:
            return list(range(n))
        step = n / 10
        return [math.floor(i * step) for i in range(10)]
    raise SelectionError(f"Unknown selection pattern {pattern!r}; expected one of {PATTERNS}")


def select_range(start: int, end: int, total_chunks: int) -> List[int]:
    """Inclusive range selection in either direction, clamped to valid indices."""
    if total_chunks <= 0:
        return []
    lo, hi = sorted((start, end))
    lo = max(lo, 0)
    hi = min(hi, total_chunks - 1)
    return list(range(lo, hi + 1))
