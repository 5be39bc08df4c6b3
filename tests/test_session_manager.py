"""Tests for the in-memory processing session registry."""
import asyncio

import pytest

from app.services.chunk_selector import SelectionError
from app.services.chunking import ChunkingService
from app.services.processor import ProcessingInProgressError
from app.services.session_manager import SessionManager, SessionNotFoundError, SessionPhase
from tests.conftest import make_document, upper_transform


@pytest.fixture
def small_manager() -> SessionManager:
    return SessionManager(chunking=ChunkingService(chunk_size=10))


def _three_chunk_text() -> str:
    return make_document(paragraphs=3, words_per_paragraph=8, word="w")


@pytest.mark.asyncio
async def test_create_chunks_and_waits_for_selection(small_manager):
    session = small_manager.create(_three_chunk_text(), "shorter", provider="openai")

    assert len(session.chunks) == 3
    assert session.phase == SessionPhase.AWAITING_SELECTION
    assert small_manager.get(session.session_id) is session


def test_unknown_session_raises():
    with pytest.raises(SessionNotFoundError):
        SessionManager().get("missing")


@pytest.mark.asyncio
async def test_run_selected_chunks_to_completion(small_manager):
    session = small_manager.create(_three_chunk_text(), "shout", provider="openai")

    small_manager.start(session.session_id, [2, 0], upper_transform())
    done = await small_manager.wait(session.session_id)

    assert done.phase == SessionPhase.COMPLETED
    assert done.selection == (0, 2)
    assert done.result == f"{session.chunks[0].text.upper()}\n\n{session.chunks[2].text.upper()}"
    assert done.status.progress == 100
    assert not small_manager.is_running(session.session_id)


@pytest.mark.asyncio
async def test_multi_chunk_session_requires_selection(small_manager):
    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    with pytest.raises(SelectionError):
        small_manager.start(session.session_id, None, upper_transform())
    with pytest.raises(SelectionError):
        small_manager.start(session.session_id, [7], upper_transform())
    assert session.phase == SessionPhase.AWAITING_SELECTION


@pytest.mark.asyncio
async def test_single_chunk_session_runs_without_selection(small_manager):
    session = small_manager.create("just a few words", "shout", provider="openai")
    small_manager.start(session.session_id, None, upper_transform())
    done = await small_manager.wait(session.session_id)

    assert done.phase == SessionPhase.COMPLETED
    assert done.result == "JUST A FEW WORDS"


@pytest.mark.asyncio
async def test_failure_marks_session_failed(small_manager):
    async def _boom(text, context):
        raise RuntimeError("provider down")

    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    small_manager.start(session.session_id, [0, 1], _boom)
    done = await small_manager.wait(session.session_id)

    assert done.phase == SessionPhase.FAILED
    assert "provider down" in done.error
    assert done.result == ""
    assert done.status.is_processing is False


@pytest.mark.asyncio
async def test_cancel_keeps_partial_result(small_manager):
    started = asyncio.Event()
    gate = asyncio.Event()

    async def _transform(text, context):
        if context.chunk_index == 1:
            started.set()
            await gate.wait()
        return "done"

    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    small_manager.start(session.session_id, [0, 1, 2], _transform)
    await started.wait()

    assert small_manager.cancel(session.session_id) is True
    gate.set()
    done = await small_manager.wait(session.session_id)

    assert done.phase == SessionPhase.CANCELLED
    assert done.result == "done"


@pytest.mark.asyncio
async def test_cancel_right_after_start_submits_nothing(small_manager):
    calls = []

    async def _transform(text, context):
        calls.append(context.source_index)
        return text

    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    small_manager.start(session.session_id, [0, 1, 2], _transform)

    assert small_manager.cancel(session.session_id) is True
    done = await small_manager.wait(session.session_id)

    assert done.phase == SessionPhase.CANCELLED
    assert done.result == ""
    assert calls == []

    # A later run is not affected by the earlier cancel
    small_manager.start(session.session_id, [1], _transform)
    done = await small_manager.wait(session.session_id)
    assert done.phase == SessionPhase.COMPLETED
    assert calls == [1]


@pytest.mark.asyncio
async def test_concurrent_start_and_discard_refused_while_running(small_manager):
    gate = asyncio.Event()

    async def _slow(text, context):
        await gate.wait()
        return text

    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    small_manager.start(session.session_id, [0], _slow)

    with pytest.raises(ProcessingInProgressError):
        small_manager.start(session.session_id, [1], _slow)
    with pytest.raises(ProcessingInProgressError):
        small_manager.discard(session.session_id)

    gate.set()
    await small_manager.wait(session.session_id)
    small_manager.discard(session.session_id)
    with pytest.raises(SessionNotFoundError):
        small_manager.get(session.session_id)


@pytest.mark.asyncio
async def test_cancel_idle_session_returns_false(small_manager):
    session = small_manager.create(_three_chunk_text(), "x", provider="openai")
    assert small_manager.cancel(session.session_id) is False
