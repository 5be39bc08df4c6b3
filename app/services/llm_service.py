"""
LLM rewrite service: the external ``transform`` behind chunk processing.

Talks to OpenAI, Anthropic, Perplexity or a local Ollama over plain HTTP
(httpx).  All prompts are module-level constants so they can be tuned without
touching logic code.

Public API
----------
RewriteLLMService.rewrite(text, instructions, ...)       -> str
RewriteLLMService.rewrite_chunk(text, TransformContext)  -> str
RewriteLLMService.detect_ai(text)                        -> AIDetectionResult
RewriteLLMService.solve_homework(assignment)             -> str
RewriteLLMService.make_transform()                       -> Transform

Unlike extraction-style callers, a rewrite has no useful fallback value, so
every transport or provider failure raises LLMProviderError.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

import httpx

from app.config import settings
from app.services.processor import Transform, TransformContext
from app.utils.helpers import clamp
from app.utils.math_formulas import protect_math_formulas, restore_math_formulas

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "anthropic", "perplexity", "ollama")


class LLMProviderError(RuntimeError):
    """Transport or provider failure while calling an LLM."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"Failed to process text with {provider}: {message}")
        self.provider = provider


@dataclasses.dataclass
class AIDetectionResult:
    is_ai: bool
    confidence: float
    details: str
    source: str = "llm"


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_REWRITE_SYSTEM_PROMPT = (
    "You are a helpful assistant that transforms text according to user instructions. "
    "Do not modify any content within [[MATH_BLOCK_*]] or [[MATH_INLINE_*]] tokens "
    "as they contain special mathematical notation."
)

_LONGER_OUTPUT_RULE = (
    " IMPORTANT: Unless explicitly requested otherwise, your rewrite MUST be longer than "
    "the original text. Add more examples, explanations, or details to make the content "
    "more comprehensive."
)

_CONTENT_SOURCE_RULE = " Use the provided content source for additional context or information."

_REWRITE_USER_PROMPT = """\
Instructions: {instructions}

Text to transform:
{text}\
"""

_CONTENT_SOURCE_SUFFIX = """

Additional content source for reference:
{content_source}\
"""

_CHUNK_PREFIX = "[Processing chunk {number} of {total}]\n"
_CHUNK_SUFFIX = "\nNote: This is part of a larger document, maintain consistency with previous chunks."

_DETECT_SYSTEM_PROMPT = (
    "You are an AI detection expert. Analyze the provided text and determine if it was "
    "likely written by an AI. Respond ONLY with JSON in this format: "
    '{"isAI": true|false, "confidence": <number between 0 and 1>, "details": "<reasoning>"}'
)

_HOMEWORK_SYSTEM_PROMPT = (
    "You are an expert tutor and academic assistant. Solve the following assignment "
    "thoroughly and step-by-step. Provide complete solutions, not just explanations. "
    "For math problems, show all work and provide final answers. For written questions, "
    "provide comprehensive responses. Actually solve the problems presented."
)

_HOMEWORK_USER_PROMPT = "Please solve the following assignment completely:\n\n{assignment}"

HOMEWORK_TEMPERATURE = 0.2

SHORTENING_KEYWORDS = ("shorter", "summarize", "reduce", "condense", "brief")


def build_rewrite_prompts(
    text: str,
    instructions: str,
    content_source: str = "",
    use_content_source: bool = False,
) -> Tuple[str, str]:
    """Return (system_prompt, user_prompt) for a rewrite request."""
    system_prompt = _REWRITE_SYSTEM_PROMPT
    lowered = instructions.lower()
    if not any(keyword in lowered for keyword in SHORTENING_KEYWORDS):
        system_prompt += _LONGER_OUTPUT_RULE

    user_prompt = _REWRITE_USER_PROMPT.format(instructions=instructions, text=text)
    if use_content_source and content_source:
        system_prompt += _CONTENT_SOURCE_RULE
        user_prompt += _CONTENT_SOURCE_SUFFIX.format(content_source=content_source)
    return system_prompt, user_prompt


def chunk_instructions(instructions: str, chunk_index: int, total_chunks: int) -> str:
    """Wrap user instructions with the position of the chunk in the larger document."""
    prefix = _CHUNK_PREFIX.format(number=chunk_index + 1, total=total_chunks)
    return prefix + instructions + _CHUNK_SUFFIX


# ---------------------------------------------------------------------------
# Robust JSON parsing
# ---------------------------------------------------------------------------

def parse_json_object(response: str) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object out of potentially messy LLM output.

    Handles markdown code fences, trailing commas, Python literals and
    surrounding prose.  Returns None when nothing usable is found.
    """
    if not response:
        return None

    text = _strip_code_fences(response.strip())
    for candidate in (text, _fix_json_issues(text), _extract_object(text)):
        if not candidate:
            continue
        for attempt in (candidate, _fix_json_issues(candidate)):
            try:
                value = json.loads(attempt)
            except (json.JSONDecodeError, ValueError):
                continue
            if isinstance(value, dict):
                return value

    logger.warning("parse_json_object: no JSON object found. Preview: %s", response[:300])
    return None


def _strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that LLMs often wrap output in."""
    text = re.sub(r"^```(?:json|javascript|text)?\s*\n?", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def _fix_json_issues(text: str) -> str:
    """Repair the most common JSON mangling patterns from LLMs."""
    text = re.sub(r",(\s*[}\]])", r"\1", text)
    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    text = re.sub(r"\bNone\b", "null", text)
    return text.strip()


def _extract_object(text: str) -> str:
    """Return the first balanced {...} fragment in *text*, or empty string."""
    start = text.find("{")
    if start == -1:
        return ""

    depth = 0
    in_string = False
    escape_next = False
    for i, ch in enumerate(text[start:], start=start):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return ""


# ---------------------------------------------------------------------------
# Main service class
# ---------------------------------------------------------------------------

class RewriteLLMService:
    """
    Rewrite / detection client for one LLM provider.

    ``transport`` is passed straight to httpx.AsyncClient; tests inject an
    httpx.MockTransport there.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = (provider or settings.DEFAULT_LLM_PROVIDER).lower()
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported LLM provider: {provider!r}. "
                f"Expected one of {', '.join(SUPPORTED_PROVIDERS)}"
            )
        self.timeout = httpx.Timeout(float(settings.LLM_TIMEOUT), connect=10.0)
        self.max_tokens = settings.LLM_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE
        self._transport = transport

    # ------------------------------------------------------------------
    # Public methods
    # ------------------------------------------------------------------

    async def rewrite(
        self,
        text: str,
        instructions: str,
        content_source: str = "",
        use_content_source: bool = False,
    ) -> str:
        """
        Rewrite ``text`` according to ``instructions``.

        Math formulas are replaced by tokens for the round trip and restored
        in the returned text.
        """
        protected, blocks = protect_math_formulas(text)
        system_prompt, user_prompt = build_rewrite_prompts(
            protected, instructions, content_source, use_content_source
        )
        response = await self._complete(system_prompt, user_prompt, self.max_tokens)
        return restore_math_formulas(response, blocks)

    async def rewrite_chunk(self, text: str, context: TransformContext) -> str:
        """Rewrite one chunk; a one-chunk run is a plain rewrite without chunk framing."""
        instructions = context.instructions
        if context.total_chunks > 1:
            instructions = chunk_instructions(
                instructions, context.chunk_index, context.total_chunks
            )
        logger.info(
            "rewrite_chunk: %s chunk %d/%d (%d chars)",
            self.provider,
            context.chunk_index + 1,
            context.total_chunks,
            len(text),
        )
        return await self.rewrite(
            text, instructions, context.content_source, context.use_content_source
        )

    def make_transform(self) -> Transform:
        """The transform handed to SequentialProcessor."""
        return self.rewrite_chunk

    async def detect_ai(self, text: str) -> AIDetectionResult:
        """Ask the model whether ``text`` looks AI-written."""
        response = await self._complete(_DETECT_SYSTEM_PROMPT, text, 1024)
        parsed = parse_json_object(response)
        if parsed is None:
            lowered = response.lower()
            return AIDetectionResult(
                is_ai="ai generated" in lowered or "written by ai" in lowered,
                confidence=0.5,
                details=response.strip() or "No analysis details provided",
                source=self.provider,
            )
        return AIDetectionResult(
            is_ai=bool(parsed.get("isAI", parsed.get("is_ai", False))),
            confidence=clamp(parsed.get("confidence", 0.5)),
            details=str(parsed.get("details") or "No analysis details provided"),
            source=self.provider,
        )

    async def solve_homework(self, assignment: str) -> str:
        """
        Solve an assignment directly.

        This is a standalone call: no rewrite prompt, chunk framing or math
        tokenising is applied.
        """
        if not assignment.strip():
            raise ValueError("Assignment text is required")
        logger.info("solve_homework: %s (%d chars)", self.provider, len(assignment))
        return await self._complete(
            _HOMEWORK_SYSTEM_PROMPT,
            _HOMEWORK_USER_PROMPT.format(assignment=assignment),
            self.max_tokens,
            temperature=HOMEWORK_TEMPERATURE,
        )

    # ------------------------------------------------------------------
    # Provider dispatch
    # ------------------------------------------------------------------

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> str:
        if temperature is None:
            temperature = self.temperature
        if self.provider in ("openai", "perplexity"):
            return await self._call_chat_completions(system_prompt, user_prompt, max_tokens, temperature)
        if self.provider == "anthropic":
            return await self._call_anthropic(system_prompt, user_prompt, max_tokens, temperature)
        return await self._call_ollama(system_prompt, user_prompt, max_tokens, temperature)

    async def _call_chat_completions(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> str:
        if self.provider == "openai":
            base_url, api_key, model = (
                settings.OPENAI_BASE_URL, settings.OPENAI_API_KEY, settings.OPENAI_MODEL,
            )
        else:
            base_url, api_key, model = (
                settings.PERPLEXITY_BASE_URL, settings.PERPLEXITY_API_KEY, settings.PERPLEXITY_MODEL,
            )
        self._require_key(api_key)

        data = await self._post(
            f"{base_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            payload={
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMProviderError(self.provider, f"unexpected response shape ({exc!r})") from exc

    async def _call_anthropic(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> str:
        self._require_key(settings.ANTHROPIC_API_KEY)
        data = await self._post(
            f"{settings.ANTHROPIC_BASE_URL}/messages",
            headers={
                "x-api-key": settings.ANTHROPIC_API_KEY,
                "anthropic-version": settings.ANTHROPIC_VERSION,
            },
            payload={
                "model": settings.ANTHROPIC_MODEL,
                "system": system_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": [{"role": "user", "content": user_prompt}],
            },
        )
        blocks = data.get("content") or []
        return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")

    async def _call_ollama(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> str:
        data = await self._post(
            f"{settings.OLLAMA_BASE_URL}/api/generate",
            headers={},
            payload={
                "model": settings.OLLAMA_LLM_MODEL,
                "system": system_prompt,
                "prompt": user_prompt,
                "stream": False,
                "options": {
                    "num_predict": max_tokens,
                    "temperature": temperature,
                },
            },
        )
        return data.get("response", "")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _require_key(self, api_key: str) -> None:
        if not api_key:
            raise LLMProviderError(
                self.provider,
                f"API key not configured; set {self.provider.upper()}_API_KEY",
            )

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST JSON and return the decoded body; every failure becomes LLMProviderError."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            logger.error("%s: request timed out after %.0f s", self.provider, settings.LLM_TIMEOUT)
            raise LLMProviderError(self.provider, "request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("%s: transport error: %s", self.provider, exc)
            raise LLMProviderError(self.provider, str(exc)) from exc

        if resp.status_code != 200:
            logger.error(
                "%s returned HTTP %d: %s", self.provider, resp.status_code, resp.text[:300]
            )
            raise LLMProviderError(self.provider, f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as exc:
            raise LLMProviderError(self.provider, "response was not valid JSON") from exc
