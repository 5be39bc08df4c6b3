"""
Writing-assistant collaborators.

POST /detect-ai  : GPTZero verdict, falling back to the LLM.
POST /transcribe  : dictation: audio upload → text.
POST /charts  : Plotly line/bar/scatter chart → URL.
POST /send-email  : e-mail the original and transformed texts.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.dependencies.services import LLMServiceFactory, get_http_transport, get_llm_factory
from app.models.schemas import (
    ChartRequest,
    ChartResponse,
    DetectAIRequest,
    DetectAIResponse,
    EmailRequest,
    EmailResponse,
    TranscriptionResponse,
)
from app.services.ai_detection import AIDetectionService
from app.services.chart_service import ChartServiceError, create_chart
from app.services.email_service import EmailServiceError, send_document_email
from app.services.llm_service import LLMProviderError
from app.services.transcription import TranscriptionError, transcribe_audio

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /detect-ai
# ---------------------------------------------------------------------------

@router.post("/detect-ai", response_model=DetectAIResponse)
async def detect_ai(
    body: DetectAIRequest,
    llm_factory: LLMServiceFactory = Depends(get_llm_factory),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> DetectAIResponse:
    llm = llm_factory(body.provider.value if body.provider else None)
    detector = AIDetectionService(llm, transport=transport)
    try:
        result = await detector.detect(body.text)
    except LLMProviderError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return DetectAIResponse(
        is_ai=result.is_ai,
        confidence=result.confidence,
        details=result.details,
        source=result.source,
    )


# ---------------------------------------------------------------------------
# POST /transcribe
# ---------------------------------------------------------------------------

@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe(
    audio: UploadFile = File(...),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> TranscriptionResponse:
    data = await audio.read()
    try:
        text = await transcribe_audio(
            data,
            filename=audio.filename or "audio.webm",
            content_type=audio.content_type or "audio/webm",
            transport=transport,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except TranscriptionError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return TranscriptionResponse(text=text)


# ---------------------------------------------------------------------------
# POST /charts
# ---------------------------------------------------------------------------

@router.post("/charts", response_model=ChartResponse)
async def charts(
    body: ChartRequest,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> ChartResponse:
    try:
        chart = await create_chart(
            body.chart_type,
            body.x,
            body.y,
            title=body.title,
            x_label=body.x_label,
            y_label=body.y_label,
            transport=transport,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ChartServiceError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return ChartResponse(url=chart.url, filename=chart.filename)


# ---------------------------------------------------------------------------
# POST /send-email
# ---------------------------------------------------------------------------

@router.post("/send-email", response_model=EmailResponse)
async def send_email(
    body: EmailRequest,
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> EmailResponse:
    try:
        success = await send_document_email(
            to=body.to,
            subject=body.subject,
            original_text=body.original_text,
            transformed_text=body.transformed_text,
            message=body.message,
            transport=transport,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except EmailServiceError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return EmailResponse(success=success)
