"""Tests for chunk selection, search and pagination helpers."""
import pytest

from app.services.chunk_selector import (
    SelectionError,
    chunk_stats,
    filter_chunks,
    normalize_selection,
    paginate,
    preview,
    select_pattern,
    select_range,
)
from app.services.chunking import Chunk


def _chunks(*texts):
    return [Chunk(index=i, text=t) for i, t in enumerate(texts)]


# ---------------------------------------------------------------------------
# normalize_selection
# ---------------------------------------------------------------------------

def test_selection_is_sorted_and_deduplicated():
    assert normalize_selection([4, 0, 2, 4], 5) == (0, 2, 4)


def test_empty_selection_rejected():
    with pytest.raises(SelectionError, match="No chunks selected"):
        normalize_selection([], 5)


@pytest.mark.parametrize("bad", [-1, 5, 99])
def test_out_of_range_selection_rejected(bad):
    with pytest.raises(SelectionError):
        normalize_selection([0, bad], 5)


# ---------------------------------------------------------------------------
# Patterns and ranges
# ---------------------------------------------------------------------------

def test_patterns_on_twenty_chunks():
    assert select_pattern("all", 20) == list(range(20))
    assert select_pattern("none", 20) == []
    assert select_pattern("first10", 20) == list(range(10))
    assert select_pattern("last10", 20) == list(range(10, 20))
    assert select_pattern("every3rd", 20) == [0, 3, 6, 9, 12, 15, 18]
    assert select_pattern("every5th", 20) == [0, 5, 10, 15]
    assert select_pattern("bookends", 20) == [0, 1, 2, 17, 18, 19]
    assert select_pattern("distributed", 20) == [0, 2, 4, 6, 8, 10, 12, 14, 16, 18]


def test_patterns_on_few_chunks():
    assert select_pattern("first10", 3) == [0, 1, 2]
    assert select_pattern("last10", 3) == [0, 1, 2]
    assert select_pattern("bookends", 5) == [0, 1, 2]
    assert select_pattern("distributed", 7) == list(range(7))


def test_unknown_pattern_rejected():
    with pytest.raises(SelectionError):
        select_pattern("middle", 10)


def test_range_is_inclusive_clamped_and_direction_agnostic():
    assert select_range(2, 4, 10) == [2, 3, 4]
    assert select_range(4, 2, 10) == [2, 3, 4]
    assert select_range(-3, 1, 10) == [0, 1]
    assert select_range(8, 50, 10) == [8, 9]
    assert select_range(0, 3, 0) == []


# ---------------------------------------------------------------------------
# Search / pagination / stats
# ---------------------------------------------------------------------------

def test_filter_is_case_insensitive_and_matches_index():
    chunks = _chunks("Alpha beta", "gamma", "delta ALPHA")
    assert [c.index for c in filter_chunks(chunks, "alpha")] == [0, 2]
    assert [c.index for c in filter_chunks(chunks, "1")] == [1]
    assert len(filter_chunks(chunks, "  ")) == 3


def test_paginate_clamps_page():
    page = paginate(list(range(25)), page=3, page_size=10)
    assert page.items == [20, 21, 22, 23, 24]
    assert page.total_pages == 3

    clamped = paginate(list(range(25)), page=9, page_size=10)
    assert clamped.page == 3

    empty = paginate([], page=1, page_size=10)
    assert empty.items == [] and empty.total_pages == 1


def test_paginate_rejects_bad_page_size():
    with pytest.raises(ValueError):
        paginate([1, 2], page_size=0)


def test_preview_truncates_with_ellipsis():
    assert preview("short") == "short"
    long_text = "x" * 200
    assert preview(long_text) == "x" * 150 + "..."


def test_chunk_stats():
    stats = chunk_stats(_chunks("a b c", "d", "e f"))
    assert (stats.total_chunks, stats.total_words) == (3, 6)
    assert (stats.avg_words, stats.min_words, stats.max_words) == (2, 1, 3)
    assert chunk_stats([]).total_chunks == 0
