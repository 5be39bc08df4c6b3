"""
Synchronous rewrite endpoints.

POST /process-text  : rewrite a whole (small) text in one call.
POST /process-chunk  : rewrite one chunk of a larger document with chunk context.
POST /solve-homework  : answer an assignment directly, without any rewrite framing.
POST /enhance-math  : tidy LaTeX notation in a text (local, no LLM call).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.services import LLMServiceFactory, get_llm_factory
from app.models.schemas import (
    EnhanceMathRequest,
    EnhanceMathResponse,
    ProcessChunkRequest,
    ProcessChunkResponse,
    ProcessTextRequest,
    ProcessTextResponse,
    SolveHomeworkRequest,
)
from app.services.llm_service import LLMProviderError
from app.services.processor import SequentialProcessor, TransformContext
from app.utils.math_formulas import normalize_latex

logger = logging.getLogger(__name__)

router = APIRouter()


def _provider_name(body):
    return body.provider.value if body.provider else None


def _bad_gateway(exc: LLMProviderError) -> HTTPException:
    logger.error("LLM call failed: %s", exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


# ---------------------------------------------------------------------------
# POST /process-text
# ---------------------------------------------------------------------------

@router.post("/process-text", response_model=ProcessTextResponse)
async def process_text(
    body: ProcessTextRequest,
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
) -> ProcessTextResponse:
    """Rewrite ``text`` according to ``instructions`` in a single provider call."""
    llm = llm_factory(_provider_name(body))
    processor = SequentialProcessor(llm.make_transform())
    try:
        result = await processor.process_single(
            body.text,
            instructions=body.instructions,
            content_source=body.content_source,
            use_content_source=body.use_content_source,
        )
    except LLMProviderError as exc:
        raise _bad_gateway(exc)

    return ProcessTextResponse(result=result, provider=llm.provider)


# ---------------------------------------------------------------------------
# POST /process-chunk
# ---------------------------------------------------------------------------

@router.post("/process-chunk", response_model=ProcessChunkResponse)
async def process_chunk(
    body: ProcessChunkRequest,
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
) -> ProcessChunkResponse:
    """
    Rewrite a single chunk.  The prompt tells the model which chunk of how
    many it is looking at so the style stays consistent across calls.
    """
    llm = llm_factory(_provider_name(body))
    context = TransformContext(
        instructions=body.instructions,
        chunk_index=body.chunk_index,
        total_chunks=body.total_chunks,
        source_index=body.chunk_index,
        content_source=body.content_source,
        use_content_source=body.use_content_source,
    )
    try:
        result = await llm.rewrite_chunk(body.text, context)
    except LLMProviderError as exc:
        raise _bad_gateway(exc)

    return ProcessChunkResponse(
        result=result,
        provider=llm.provider,
        chunk_index=body.chunk_index,
        total_chunks=body.total_chunks,
    )


# ---------------------------------------------------------------------------
# POST /solve-homework
# ---------------------------------------------------------------------------

@router.post("/solve-homework", response_model=ProcessTextResponse)
async def solve_homework(
    body: SolveHomeworkRequest,
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
) -> ProcessTextResponse:
    llm = llm_factory(_provider_name(body))
    try:
        solution = await llm.solve_homework(body.assignment)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except LLMProviderError as exc:
        raise _bad_gateway(exc)
    return ProcessTextResponse(result=solution, provider=llm.provider)


# ---------------------------------------------------------------------------
# POST /enhance-math
# ---------------------------------------------------------------------------

@router.post("/enhance-math", response_model=EnhanceMathResponse)
async def enhance_math(body: EnhanceMathRequest) -> EnhanceMathResponse:
    return EnhanceMathResponse(text=normalize_latex(body.text))
