"""
Sequential multi-chunk processor.

Drives an external rewrite ``transform`` over a document's chunks strictly one
at a time, in ascending chunk-index order, accumulating the joined output and
publishing a ProcessingStatus after every step.

Usage
-----
    processor = SequentialProcessor(transform)
    text = await processor.process_chunks(chunks, selection=[2, 0], instructions="...")
    # from elsewhere, while running:
    processor.cancel()

Failure policy is fail-fast: the first transform error aborts the run, resets
the status to idle and propagates.  Cancellation is cooperative: the in-flight
call settles, its result is discarded and no further calls are made.
"""
from __future__ import annotations

import dataclasses
import inspect
import logging
import math
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from app.services.chunk_selector import SelectionError
from app.services.chunking import CHUNK_SEPARATOR, Chunk

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ProcessingInProgressError(RuntimeError):
    """A run was started while another run on the same processor is active."""


class ProcessingCancelledError(RuntimeError):
    """Raised from a run that was cancelled; carries the text accumulated before cancel."""

    def __init__(self, partial_result: str = "") -> None:
        super().__init__("Processing cancelled")
        self.partial_result = partial_result


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ProcessingStatus:
    """Live progress record of one processing run."""

    is_processing: bool = False
    current_chunk: int = 0
    total_chunks: int = 0
    progress: int = 0

    def reset(self) -> None:
        self.is_processing = False
        self.current_chunk = 0
        self.total_chunks = 0
        self.progress = 0

    def copy(self) -> "ProcessingStatus":
        return dataclasses.replace(self)

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class TransformContext:
    """Metadata handed to the transform alongside each chunk's text."""

    instructions: str
    chunk_index: int          # position within this run
    total_chunks: int         # number of chunks in this run
    source_index: int = 0     # the chunk's index in the original document
    content_source: str = ""
    use_content_source: bool = False


Transform = Callable[[str, TransformContext], Awaitable[str]]
ChunkCallback = Callable[[str, int, int], Any]
StatusListener = Callable[[ProcessingStatus], None]


def _percent(done: int, total: int) -> int:
    """Half-up rounded percentage."""
    if total <= 0:
        return 0
    return int(math.floor(done / total * 100 + 0.5))


# ---------------------------------------------------------------------------
# SequentialProcessor
# ---------------------------------------------------------------------------

class SequentialProcessor:
    """
    Runs ``transform`` over chunks one at a time.

    One processor owns exactly one ProcessingStatus and supports one active
    run at a time; create a processor per session to run sessions side by side.
    """

    def __init__(
        self,
        transform: Transform,
        status_listener: Optional[StatusListener] = None,
    ) -> None:
        self._transform = transform
        self._status_listener = status_listener
        self.status = ProcessingStatus()
        self._active = False
        self._cancelled = False

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._active

    def _set_status(self, is_processing: bool, current: int, total: int, progress: int) -> None:
        self.status.is_processing = is_processing
        self.status.current_chunk = current
        self.status.total_chunks = total
        self.status.progress = progress
        self._notify()

    def _reset_status(self) -> None:
        self.status.reset()
        self._notify()

    def _notify(self) -> None:
        if self._status_listener is not None:
            self._status_listener(self.status.copy())

    def _begin(self) -> None:
        if self._active:
            raise ProcessingInProgressError("A processing run is already active")
        self._active = True
        self._cancelled = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self) -> bool:
        """
        Stop local continuation of the active run.

        Returns False when nothing is running.  Work already accepted by the
        external service is not rolled back.
        """
        if not self._active:
            return False
        self._cancelled = True
        logger.info("Processing cancelled at chunk %d", self.status.current_chunk)
        self._reset_status()
        return True

    async def process_single(
        self,
        text: str,
        instructions: str = "",
        content_source: str = "",
        use_content_source: bool = False,
    ) -> str:
        """Single-chunk path: one transform call, idle → active(0%) → idle(100%)."""
        self._begin()
        completed = False
        try:
            self._set_status(True, 0, 1, 0)
            context = TransformContext(
                instructions=instructions,
                chunk_index=0,
                total_chunks=1,
                source_index=0,
                content_source=content_source,
                use_content_source=use_content_source,
            )
            result = await self._transform(text, context)
            if self._cancelled:
                raise ProcessingCancelledError("")
            self._set_status(False, 1, 1, 100)
            completed = True
            return result
        except ProcessingCancelledError:
            raise
        except Exception as exc:
            logger.error("Single-chunk processing failed: %s", exc)
            raise
        finally:
            if not completed and self.status != ProcessingStatus():
                self._reset_status()
            self._active = False

    async def process_chunks(
        self,
        chunks: Sequence[Chunk],
        selection: Optional[Iterable[int]] = None,
        instructions: str = "",
        content_source: str = "",
        use_content_source: bool = False,
        on_chunk_processed: Optional[ChunkCallback] = None,
    ) -> str:
        """
        Process all chunks, or only the selected ones, in ascending index order.

        Args:
            chunks:             Ordered chunks of one document.
            selection:          Chunk indices to process; None means all.
            instructions:       User instructions forwarded to the transform.
            content_source:     Optional reference text for the transform.
            use_content_source: Whether the transform should use it.
            on_chunk_processed: Called as (result_so_far, done, total) after
                                every successful chunk; may be async.

        Returns:
            The processed chunk texts joined by a blank line.

        Raises:
            SelectionError:            Empty or out-of-range selection.
            ProcessingInProgressError: This processor is already running.
            ProcessingCancelledError:  cancel() was called during the run.
            Exception:                 Whatever the transform raised.
        """
        if not chunks:
            raise ValueError("No chunks to process")

        if selection is None and len(chunks) == 1:
            result = await self.process_single(
                chunks[0].text, instructions, content_source, use_content_source
            )
            if on_chunk_processed is not None:
                await _maybe_await(on_chunk_processed(result, 1, 1))
            return result

        by_index = {chunk.index: chunk for chunk in chunks}
        if selection is None:
            targets: List[Chunk] = sorted(chunks, key=lambda c: c.index)
        else:
            indices = sorted(set(selection))
            if not indices:
                raise SelectionError("No chunks selected")
            missing = [i for i in indices if i not in by_index]
            if missing:
                raise SelectionError(f"No chunk with index {missing} in this document")
            targets = [by_index[i] for i in indices]

        self._begin()
        total = len(targets)
        result = ""
        completed = False
        try:
            self._set_status(True, 0, total, 0)

            for position, chunk in enumerate(targets):
                if self._cancelled:
                    raise ProcessingCancelledError(result)

                self._set_status(True, position, total, _percent(position, total))
                context = TransformContext(
                    instructions=instructions,
                    chunk_index=position,
                    total_chunks=total,
                    source_index=chunk.index,
                    content_source=content_source,
                    use_content_source=use_content_source,
                )
                chunk_result = await self._transform(chunk.text, context)

                # Cancelled while the call was in flight: drop its result
                if self._cancelled:
                    raise ProcessingCancelledError(result)

                result += ("" if not result else CHUNK_SEPARATOR) + chunk_result
                self._set_status(True, position + 1, total, _percent(position + 1, total))
                logger.info(
                    "Processed chunk %d/%d (source index %d)",
                    position + 1,
                    total,
                    chunk.index,
                )

                if on_chunk_processed is not None:
                    await _maybe_await(on_chunk_processed(result, position + 1, total))

            self._set_status(False, total, total, 100)
            completed = True
            return result

        except ProcessingCancelledError:
            logger.info("Run of %d chunks cancelled; partial result returned to the caller", total)
            raise
        except Exception as exc:
            logger.error("Chunk processing aborted: %s", exc)
            raise
        finally:
            if not completed and self.status != ProcessingStatus():
                self._reset_status()
            self._active = False


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value
