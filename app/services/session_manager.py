"""
In-memory registry of chunked processing sessions.

A session is created when a document is chunked.  Large documents wait in
``awaiting_selection`` until the user submits a Selection; the run then happens
in a background asyncio.Task whose progress is read from the session's own
SequentialProcessor status.

Usage
-----
    from app.services.session_manager import session_manager

    session = session_manager.create(text, instructions, provider="openai")
    session_manager.start(session.session_id, [0, 2], transform)
    # ... later ...
    current = session_manager.get(session.session_id)
"""
from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import time
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from app.services.chunk_selector import SelectionError, normalize_selection
from app.services.chunking import Chunk, ChunkingService
from app.services.processor import (
    ProcessingCancelledError,
    ProcessingInProgressError,
    ProcessingStatus,
    SequentialProcessor,
    Transform,
)

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """No session with the given id."""


# ---------------------------------------------------------------------------
# Session phase enum
# ---------------------------------------------------------------------------

class SessionPhase(str, enum.Enum):
    AWAITING_SELECTION = "awaiting_selection"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Processing session (mutable dataclass shared between task and poller)
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ProcessingSession:
    session_id: str
    chunks: List[Chunk]
    instructions: str
    provider: str
    content_source: str = ""
    use_content_source: bool = False
    phase: SessionPhase = SessionPhase.AWAITING_SELECTION
    selection: Optional[Tuple[int, ...]] = None
    result: str = ""
    error: Optional[str] = None
    processor: Optional[SequentialProcessor] = None
    cancel_requested: bool = False
    created_at: float = dataclasses.field(default_factory=time.monotonic)
    completed_at: Optional[float] = None

    @property
    def status(self) -> ProcessingStatus:
        if self.processor is None:
            return ProcessingStatus()
        return self.processor.status

    @property
    def elapsed_seconds(self) -> float:
        end = self.completed_at if self.completed_at else time.monotonic()
        return round(end - self.created_at, 2)


# ---------------------------------------------------------------------------
# Session manager
# ---------------------------------------------------------------------------

class SessionManager:
    """Keeps processing sessions and their background tasks, keyed by session id."""

    def __init__(self, chunking: Optional[ChunkingService] = None) -> None:
        self._chunking = chunking or ChunkingService()
        self._sessions: Dict[str, ProcessingSession] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def create(
        self,
        text: str,
        instructions: str,
        provider: str,
        content_source: str = "",
        use_content_source: bool = False,
    ) -> ProcessingSession:
        """Chunk ``text`` and register a session waiting for a selection."""
        session = ProcessingSession(
            session_id=uuid.uuid4().hex,
            chunks=self._chunking.chunk(text),
            instructions=instructions,
            provider=provider,
            content_source=content_source,
            use_content_source=use_content_source,
        )
        self._sessions[session.session_id] = session
        logger.info(
            "Session %s created with %d chunk(s)", session.session_id, len(session.chunks)
        )
        return session

    def get(self, session_id: str) -> ProcessingSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def is_running(self, session_id: str) -> bool:
        task = self._tasks.get(session_id)
        return task is not None and not task.done()

    def start(
        self,
        session_id: str,
        selection: Optional[Iterable[int]],
        transform: Transform,
    ) -> ProcessingSession:
        """
        Launch a background run over the selected chunks of a session.

        The selection is validated up front so bad input fails the request,
        not the background task.  ``selection=None`` is only accepted for a
        one-chunk document, which then takes the single-chunk path.
        """
        session = self.get(session_id)
        if self.is_running(session_id):
            raise ProcessingInProgressError(f"Session {session_id} is already processing")

        if selection is None:
            if len(session.chunks) > 1:
                raise SelectionError("Chunk selection is required for multi-chunk documents")
            session.selection = None
        else:
            session.selection = normalize_selection(selection, len(session.chunks))
        session.processor = SequentialProcessor(transform)
        session.phase = SessionPhase.PROCESSING
        session.result = ""
        session.error = None
        session.completed_at = None
        session.cancel_requested = False

        def _on_chunk(result: str, done: int, total: int) -> None:
            session.result = result

        async def _run() -> None:
            try:
                if session.cancel_requested:
                    # Cancelled before the first chunk was submitted
                    logger.info("Session %s cancelled before processing began", session_id)
                    session.phase = SessionPhase.CANCELLED
                    return
                session.result = await session.processor.process_chunks(
                    session.chunks,
                    selection=session.selection,
                    instructions=session.instructions,
                    content_source=session.content_source,
                    use_content_source=session.use_content_source,
                    on_chunk_processed=_on_chunk,
                )
                session.phase = SessionPhase.COMPLETED
            except ProcessingCancelledError as exc:
                session.phase = SessionPhase.CANCELLED
                session.result = exc.partial_result
            except Exception as exc:
                logger.error(
                    "Processing failed for session %s: %s", session_id, exc, exc_info=True
                )
                session.phase = SessionPhase.FAILED
                session.error = str(exc)[:500]
                session.result = ""
            finally:
                session.completed_at = time.monotonic()

        task = asyncio.create_task(_run())
        self._tasks[session_id] = task
        task.add_done_callback(lambda _t: self._cleanup(session_id))

        logger.info(
            "Session %s: processing %d chunk(s)",
            session_id,
            len(session.selection) if session.selection is not None else len(session.chunks),
        )
        return session

    def cancel(self, session_id: str) -> bool:
        """Request cooperative cancellation; False when the session is not running."""
        session = self.get(session_id)
        if session.processor is None or not self.is_running(session_id):
            return False
        if session.processor.cancel():
            return True
        # The task exists but its run has not begun yet
        session.cancel_requested = True
        return True

    async def wait(self, session_id: str) -> ProcessingSession:
        """Await the session's background task, if any."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get(session_id)

    def discard(self, session_id: str) -> None:
        """Forget a session; refused while it is still processing."""
        self.get(session_id)
        if self.is_running(session_id):
            raise ProcessingInProgressError(f"Session {session_id} is still processing")
        self._sessions.pop(session_id, None)

    def _cleanup(self, session_id: str) -> None:
        """Remove the task reference (the session is kept for polling)."""
        self._tasks.pop(session_id, None)


# Module-level singleton instance
session_manager = SessionManager()
