"""Tests for the LLM rewrite service (all HTTP replaced by httpx.MockTransport)."""
import json

import httpx
import pytest

from app.config import settings
from app.services.llm_service import (
    LLMProviderError,
    RewriteLLMService,
    build_rewrite_prompts,
    chunk_instructions,
    parse_json_object,
)
from app.services.processor import TransformContext


@pytest.fixture(autouse=True)
def _api_keys(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "ak-test")
    monkeypatch.setattr(settings, "PERPLEXITY_API_KEY", "pk-test")


def _recording_transport(reply, status_code=200):
    """MockTransport that stores every request and answers with ``reply``."""
    requests = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=reply)

    return httpx.MockTransport(_handler), requests


def _openai_reply(content):
    return {"choices": [{"message": {"content": content}}]}


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

def test_longer_output_rule_unless_shortening_requested():
    system, _ = build_rewrite_prompts("text", "Make it formal")
    assert "MUST be longer" in system

    system, _ = build_rewrite_prompts("text", "Please SUMMARIZE this")
    assert "MUST be longer" not in system


def test_content_source_only_when_enabled():
    _, user = build_rewrite_prompts("text", "fix", "reference notes", use_content_source=False)
    assert "reference notes" not in user

    system, user = build_rewrite_prompts("text", "fix", "reference notes", use_content_source=True)
    assert "reference notes" in user
    assert "content source" in system


def test_chunk_instructions_wraps_with_position():
    wrapped = chunk_instructions("fix grammar", 1, 4)
    assert wrapped.startswith("[Processing chunk 2 of 4]\nfix grammar")
    assert wrapped.endswith("maintain consistency with previous chunks.")


# ---------------------------------------------------------------------------
# JSON parsing
# ---------------------------------------------------------------------------

def test_parse_json_object_handles_fences_and_prose():
    assert parse_json_object('```json\n{"isAI": true, "confidence": 0.9,}\n```') == {
        "isAI": True,
        "confidence": 0.9,
    }
    assert parse_json_object('Sure! Here you go: {"isAI": False} hope it helps') == {"isAI": False}
    assert parse_json_object("no json here") is None


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

def test_unknown_provider_rejected():
    with pytest.raises(ValueError):
        RewriteLLMService("gemini")


@pytest.mark.asyncio
async def test_openai_rewrite_protects_math():
    transport, requests = _recording_transport(_openai_reply("Rewritten [[MATH_INLINE_0]] text"))
    service = RewriteLLMService("openai", transport=transport)

    result = await service.rewrite("Original $x^2$ text", "Make it formal")

    assert result == "Rewritten $x^2$ text"
    sent = json.loads(requests[0].content)
    assert requests[0].url.path.endswith("/chat/completions")
    assert requests[0].headers["authorization"] == "Bearer sk-test"
    assert "$x^2$" not in sent["messages"][1]["content"]
    assert "[[MATH_INLINE_0]]" in sent["messages"][1]["content"]


@pytest.mark.asyncio
async def test_anthropic_request_shape():
    transport, requests = _recording_transport({"content": [{"type": "text", "text": "Hi"}]})
    service = RewriteLLMService("anthropic", transport=transport)

    assert await service.rewrite("hello", "shorter") == "Hi"
    request = requests[0]
    body = json.loads(request.content)
    assert request.url.path.endswith("/messages")
    assert request.headers["x-api-key"] == "ak-test"
    assert "anthropic-version" in request.headers
    assert body["system"].startswith("You are a helpful assistant")


@pytest.mark.asyncio
async def test_ollama_needs_no_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    transport, requests = _recording_transport({"response": "local"})
    service = RewriteLLMService("ollama", transport=transport)

    assert await service.rewrite("hello", "fix") == "local"
    assert requests[0].url.path == "/api/generate"


@pytest.mark.asyncio
async def test_rewrite_chunk_adds_chunk_context_only_for_multi_chunk_runs():
    transport, requests = _recording_transport(_openai_reply("ok"))
    service = RewriteLLMService("openai", transport=transport)

    await service.rewrite_chunk("text", TransformContext("fix", chunk_index=0, total_chunks=3))
    await service.rewrite_chunk("text", TransformContext("fix", chunk_index=0, total_chunks=1))

    first = json.loads(requests[0].content)["messages"][1]["content"]
    second = json.loads(requests[1].content)["messages"][1]["content"]
    assert "[Processing chunk 1 of 3]" in first
    assert "Processing chunk" not in second


@pytest.mark.asyncio
async def test_missing_key_raises_provider_error(monkeypatch):
    monkeypatch.setattr(settings, "PERPLEXITY_API_KEY", "")
    service = RewriteLLMService("perplexity")
    with pytest.raises(LLMProviderError, match="API key not configured"):
        await service.rewrite("hello", "fix")


@pytest.mark.asyncio
async def test_http_error_raises_provider_error():
    transport, _ = _recording_transport({"error": "overloaded"}, status_code=529)
    service = RewriteLLMService("openai", transport=transport)
    with pytest.raises(LLMProviderError) as excinfo:
        await service.rewrite("hello", "fix")
    assert "Failed to process text with openai" in str(excinfo.value)
    assert "529" in str(excinfo.value)


@pytest.mark.asyncio
async def test_timeout_raises_provider_error():
    def _handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    service = RewriteLLMService("openai", transport=httpx.MockTransport(_handler))
    with pytest.raises(LLMProviderError, match="timed out"):
        await service.rewrite("hello", "fix")


@pytest.mark.asyncio
async def test_detect_ai_parses_and_clamps():
    reply = _openai_reply('{"isAI": true, "confidence": 1.7, "details": "uniform tone"}')
    transport, _ = _recording_transport(reply)
    result = await RewriteLLMService("openai", transport=transport).detect_ai("text")

    assert result.is_ai is True
    assert result.confidence == 1.0
    assert result.details == "uniform tone"
    assert result.source == "openai"


@pytest.mark.asyncio
async def test_detect_ai_falls_back_to_keywords():
    transport, _ = _recording_transport(_openai_reply("This was likely written by AI."))
    result = await RewriteLLMService("openai", transport=transport).detect_ai("text")
    assert result.is_ai is True
    assert result.confidence == 0.5


# ---------------------------------------------------------------------------
# Homework solver
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_solve_homework_skips_rewrite_framing():
    transport, requests = _recording_transport(_openai_reply("x = 2"))
    service = RewriteLLMService("perplexity", transport=transport)

    assert await service.solve_homework("Solve $x + 1 = 3$") == "x = 2"

    body = json.loads(requests[0].content)
    system, user = body["messages"][0]["content"], body["messages"][1]["content"]
    assert system.startswith("You are an expert tutor")
    assert "MUST be longer" not in system
    assert user == "Please solve the following assignment completely:\n\nSolve $x + 1 = 3$"
    assert body["temperature"] == 0.2
    assert requests[0].headers["authorization"] == "Bearer pk-test"


@pytest.mark.asyncio
async def test_solve_homework_anthropic_uses_low_temperature():
    transport, requests = _recording_transport({"content": [{"type": "text", "text": "42"}]})
    service = RewriteLLMService("anthropic", transport=transport)

    assert await service.solve_homework("What is 6 * 7?") == "42"
    body = json.loads(requests[0].content)
    assert body["temperature"] == 0.2
    assert body["system"].startswith("You are an expert tutor")


@pytest.mark.asyncio
async def test_solve_homework_rejects_blank_assignment():
    transport, requests = _recording_transport(_openai_reply("unused"))
    with pytest.raises(ValueError):
        await RewriteLLMService("openai", transport=transport).solve_homework("   ")
    assert requests == []
