"""
AI-content detection: GPTZero first, the configured LLM as fallback.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.config import settings
from app.services.llm_service import AIDetectionResult, RewriteLLMService
from app.utils.helpers import clamp

logger = logging.getLogger(__name__)


class GPTZeroError(RuntimeError):
    """GPTZero unavailable, unconfigured or returned something unusable."""


class AIDetectionService:
    """Run GPTZero when configured and fall back to model-based detection."""

    def __init__(
        self,
        llm: RewriteLLMService,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.llm = llm
        self._transport = transport

    async def detect(self, text: str) -> AIDetectionResult:
        if not text or not text.strip():
            raise ValueError("Text is required")

        try:
            return await self._detect_with_gptzero(text)
        except GPTZeroError as exc:
            logger.info("GPTZero failed, falling back to %s: %s", self.llm.provider, exc)

        return await self.llm.detect_ai(text)

    async def _detect_with_gptzero(self, text: str) -> AIDetectionResult:
        if not settings.GPTZERO_API_KEY:
            raise GPTZeroError("GPTZERO_API_KEY not configured")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                resp = await client.post(
                    f"{settings.GPTZERO_BASE_URL}/predict/text",
                    headers={"x-api-key": settings.GPTZERO_API_KEY},
                    json={"document": text},
                )
        except httpx.HTTPError as exc:
            raise GPTZeroError(str(exc)) from exc

        if resp.status_code != 200:
            raise GPTZeroError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            document = resp.json()["documents"][0]
            probability = clamp(document["completely_generated_prob"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GPTZeroError(f"unexpected response shape ({exc!r})") from exc

        average = clamp(document.get("average_generated_prob", probability))
        return AIDetectionResult(
            is_ai=probability >= 0.5,
            confidence=probability,
            details=(
                f"GPTZero: {probability:.0%} probability the text is entirely AI-generated "
                f"(average sentence probability {average:.0%})."
            ),
            source="gptzero",
        )
