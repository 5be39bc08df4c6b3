"""
Speech-to-text through the OpenAI transcription endpoint (Whisper).
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Transcription provider failed or returned no text."""


async def transcribe_audio(
    audio: bytes,
    filename: str = "audio.webm",
    content_type: str = "audio/webm",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Transcribe an audio clip and return the trimmed text.

    Raises:
        ValueError:         Empty or oversized audio.
        TranscriptionError: Missing key, timeout, provider error or empty result.
    """
    if not audio:
        raise ValueError("No audio data provided")
    if len(audio) > settings.MAX_AUDIO_SIZE:
        raise ValueError(
            f"Audio file too large ({len(audio)} bytes); limit is {settings.MAX_AUDIO_SIZE} bytes"
        )
    if not settings.OPENAI_API_KEY:
        raise TranscriptionError(
            "OpenAI API key not configured. Please set OPENAI_API_KEY environment variable."
        )

    logger.info("Transcription starting (%d bytes, %s)", len(audio), content_type)
    try:
        async with httpx.AsyncClient(
            timeout=settings.TRANSCRIPTION_TIMEOUT, transport=transport
        ) as client:
            resp = await client.post(
                f"{settings.OPENAI_BASE_URL}/audio/transcriptions",
                headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
                data={"model": settings.OPENAI_TRANSCRIPTION_MODEL, "response_format": "text"},
                files={"file": (filename, audio, content_type)},
            )
    except httpx.TimeoutException as exc:
        raise TranscriptionError(
            f"Transcription timed out after {settings.TRANSCRIPTION_TIMEOUT:.0f} seconds"
        ) from exc
    except httpx.HTTPError as exc:
        raise TranscriptionError(f"Failed to transcribe audio: {exc}") from exc

    if resp.status_code != 200:
        logger.error("Transcription HTTP %d: %s", resp.status_code, resp.text[:300])
        raise TranscriptionError(f"Failed to transcribe audio: HTTP {resp.status_code}")

    text = resp.text.strip()
    if not text:
        raise TranscriptionError("No transcription text returned")

    logger.info("Transcription completed (%d chars)", len(text))
    return text
