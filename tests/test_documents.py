"""Tests for saved documents."""
import pytest
from httpx import AsyncClient

from tests.conftest import USER2_HEADERS, USER_HEADERS

DOCUMENT = {
    "title": "Essay draft",
    "input_text": "original text",
    "output_text": "rewritten text",
    "instructions": "make it formal",
    "llm_provider": "anthropic",
}


async def _save(client: AsyncClient, headers=None, **overrides) -> dict:
    resp = await client.post(
        "/api/documents", json={**DOCUMENT, **overrides}, headers=headers or USER_HEADERS
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_save_and_get(client: AsyncClient):
    saved = await _save(client)
    assert saved["llm_provider"] == "anthropic"
    assert saved["content_source"] is None

    resp = await client.get(f"/api/documents/{saved['id']}", headers=USER_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["output_text"] == "rewritten text"


@pytest.mark.asyncio
async def test_list_returns_summaries(client: AsyncClient):
    await _save(client, title="One")
    await _save(client, title="Two")

    items = (await client.get("/api/documents", headers=USER_HEADERS)).json()
    assert [item["title"] for item in items] == ["Two", "One"]
    assert "input_text" not in items[0]


@pytest.mark.asyncio
async def test_documents_are_private(client: AsyncClient):
    saved = await _save(client)
    resp = await client.get(f"/api/documents/{saved['id']}", headers=USER2_HEADERS)
    assert resp.status_code == 404
    assert (await client.get("/api/documents", headers=USER2_HEADERS)).json() == []


@pytest.mark.asyncio
async def test_unknown_provider_rejected(client: AsyncClient):
    resp = await client.post(
        "/api/documents", json={**DOCUMENT, "llm_provider": "gemini"}, headers=USER_HEADERS
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete(client: AsyncClient):
    saved = await _save(client)
    resp = await client.delete(f"/api/documents/{saved['id']}", headers=USER_HEADERS)
    assert resp.status_code == 204
    resp = await client.get(f"/api/documents/{saved['id']}", headers=USER_HEADERS)
    assert resp.status_code == 404
