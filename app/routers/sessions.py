"""
Chunked processing sessions.

Route summary
-------------
POST   /  : chunk a text; one-chunk texts are processed at once.
GET    /{session_id}/chunks  : search + paginate chunk previews, with stats.
POST   /{session_id}/selection/pattern  : resolve a quick-selection pattern or range.
POST   /{session_id}/process  : start a background run over a selection (202).
GET    /{session_id}/status  : poll phase, progress and (partial) result.
POST   /{session_id}/cancel  : stop the run after the chunk in flight.
DELETE /{session_id}  : forget a finished session.
"""
from __future__ import annotations

import dataclasses
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies.services import (
    LLMServiceFactory,
    get_llm_factory,
    get_session_manager,
)
from app.models.schemas import (
    CancelResponse,
    ChunkListResponse,
    ChunkPreviewSchema,
    ChunkStatsSchema,
    PatternSelectionRequest,
    ProcessSessionRequest,
    ProcessTextRequest,
    ProcessingStatusSchema,
    SelectionResponse,
    SessionCreateResponse,
    SessionStatusResponse,
)
from app.services.chunk_selector import (
    SelectionError,
    chunk_stats,
    filter_chunks,
    paginate,
    preview,
    select_pattern,
    select_range,
)
from app.services.processor import ProcessingInProgressError
from app.services.session_manager import (
    ProcessingSession,
    SessionManager,
    SessionNotFoundError,
    SessionPhase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_session(manager: SessionManager, session_id: str) -> ProcessingSession:
    try:
        return manager.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found.",
        )


def _status_response(session: ProcessingSession) -> SessionStatusResponse:
    return SessionStatusResponse(
        session_id=session.session_id,
        phase=session.phase.value,
        status=ProcessingStatusSchema(**session.status.as_dict()),
        selection=list(session.selection) if session.selection is not None else None,
        result=session.result,
        error=session.error,
        elapsed_seconds=session.elapsed_seconds,
    )


# ---------------------------------------------------------------------------
# POST /
# ---------------------------------------------------------------------------

@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: ProcessTextRequest,
    manager: SessionManager = Depends(get_session_manager),
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
) -> SessionCreateResponse:
    """
    Chunk a document.

    A document that fits in one chunk is processed immediately and the result
    returned; larger documents wait for a chunk selection.
    """
    llm = llm_factory(body.provider.value if body.provider else None)
    session = manager.create(
        body.text,
        body.instructions,
        provider=llm.provider,
        content_source=body.content_source,
        use_content_source=body.use_content_source,
    )

    result = None
    if len(session.chunks) == 1:
        manager.start(session.session_id, None, llm.make_transform())
        session = await manager.wait(session.session_id)
        if session.phase == SessionPhase.FAILED:
            logger.error("Single-chunk session %s failed: %s", session.session_id, session.error)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=session.error)
        result = session.result

    stats = chunk_stats(session.chunks)
    return SessionCreateResponse(
        session_id=session.session_id,
        phase=session.phase.value,
        total_chunks=stats.total_chunks,
        total_words=stats.total_words,
        requires_selection=session.phase == SessionPhase.AWAITING_SELECTION,
        result=result,
    )


# ---------------------------------------------------------------------------
# GET /{session_id}/chunks
# ---------------------------------------------------------------------------

@router.get("/{session_id}/chunks", response_model=ChunkListResponse)
async def list_chunks(
    session_id: str,
    search: str = Query("", description="Case-insensitive substring filter"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    manager: SessionManager = Depends(get_session_manager),
) -> ChunkListResponse:
    """Chunk previews for the selection UI, filtered and paginated."""
    session = _get_session(manager, session_id)
    result_page = paginate(filter_chunks(session.chunks, search), page, page_size)
    stats = chunk_stats(session.chunks)

    return ChunkListResponse(
        session_id=session_id,
        chunks=[
            ChunkPreviewSchema(index=c.index, preview=preview(c.text), word_count=c.word_count)
            for c in result_page.items
        ],
        page=result_page.page,
        page_size=result_page.page_size,
        total_items=result_page.total_items,
        total_pages=result_page.total_pages,
        stats=ChunkStatsSchema(**dataclasses.asdict(stats)),
    )


# ---------------------------------------------------------------------------
# POST /{session_id}/selection/pattern
# ---------------------------------------------------------------------------

@router.post("/{session_id}/selection/pattern", response_model=SelectionResponse)
async def resolve_pattern(
    session_id: str,
    body: PatternSelectionRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SelectionResponse:
    session = _get_session(manager, session_id)
    total = len(session.chunks)
    try:
        if body.pattern == "range":
            indices = select_range(body.start, body.end, total)
        else:
            indices = select_pattern(body.pattern, total)
    except SelectionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return SelectionResponse(indices=indices, count=len(indices))


# ---------------------------------------------------------------------------
# POST /{session_id}/process
# ---------------------------------------------------------------------------

@router.post(
    "/{session_id}/process",
    response_model=SessionStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def process_session(
    session_id: str,
    body: ProcessSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
) -> SessionStatusResponse:
    """
    Start processing the selected chunks in the background.

    Chunks always run in ascending index order regardless of the order the
    indices were submitted in.  Poll ``/status`` for progress.
    """
    session = _get_session(manager, session_id)
    llm = llm_factory(session.provider)
    try:
        session = manager.start(session_id, body.selection, llm.make_transform())
    except SelectionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ProcessingInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return _status_response(session)


# ---------------------------------------------------------------------------
# GET /{session_id}/status
# ---------------------------------------------------------------------------

@router.get("/{session_id}/status", response_model=SessionStatusResponse)
async def session_status(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    return _status_response(_get_session(manager, session_id))


# ---------------------------------------------------------------------------
# POST /{session_id}/cancel
# ---------------------------------------------------------------------------

@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> CancelResponse:
    _get_session(manager, session_id)
    return CancelResponse(session_id=session_id, cancelled=manager.cancel(session_id))


# ---------------------------------------------------------------------------
# DELETE /{session_id}
# ---------------------------------------------------------------------------

@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> None:
    _get_session(manager, session_id)
    try:
        manager.discard(session_id)
    except ProcessingInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
