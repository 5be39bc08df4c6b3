"""Tests for GET /api/health."""
import pytest
from httpx import AsyncClient

from app.config import settings


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["database"] == "ok"
    assert set(data["providers"]) == {"openai", "anthropic", "perplexity", "ollama"}
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_health_reports_missing_default_key(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_LLM_PROVIDER", "openai")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    data = (await client.get("/api/health")).json()
    assert data["providers"]["openai"] is False
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_health_healthy_with_key(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_LLM_PROVIDER", "anthropic")
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "ak-test")
    data = (await client.get("/api/health")).json()
    assert data["status"] == "healthy"
    assert data["default_provider"] == "anthropic"


@pytest.mark.asyncio
async def test_process_time_header(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.headers["x-process-time"].endswith("ms")
