"""
Shared fixtures for Rewrite Assistant backend tests.

Each test gets a fresh in-memory SQLite database (aiosqlite) and a fresh
SessionManager.  LLM calls go through FakeLLMService, so no test touches the
network.
"""
from __future__ import annotations

import asyncio
import os
from typing import AsyncGenerator, Callable, List, Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine never point at Postgres.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from app.database import Base, get_db  # noqa: E402
from app.dependencies.services import get_llm_factory, get_session_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.services.llm_service import LLMProviderError  # noqa: E402
from app.services.processor import TransformContext  # noqa: E402
from app.services.session_manager import SessionManager  # noqa: E402


# ---------------------------------------------------------------------------
# Fake LLM
# ---------------------------------------------------------------------------

class FakeLLMService:
    """
    Stand-in for RewriteLLMService.

    Upper-cases text, records every call, and can be told to fail on a given
    call number or to block each call until ``gate`` is set.
    """

    def __init__(self, provider: Optional[str] = None) -> None:
        self.provider = provider or "openai"
        self.calls: List[tuple] = []
        self.fail_on_call: Optional[int] = None
        self.gate: Optional[asyncio.Event] = None
        self.assignments: List[str] = []

    async def rewrite_chunk(self, text: str, context: TransformContext) -> str:
        self.calls.append((text, context))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise LLMProviderError(self.provider, "HTTP 500: boom")
        return text.upper()

    def make_transform(self):
        return self.rewrite_chunk

    async def detect_ai(self, text: str):
        from app.services.llm_service import AIDetectionResult

        return AIDetectionResult(is_ai=False, confidence=0.2, details="fake", source=self.provider)

    async def solve_homework(self, assignment: str) -> str:
        self.assignments.append(assignment)
        if self.fail_on_call == len(self.assignments):
            raise LLMProviderError(self.provider, "HTTP 500: boom")
        return f"Solution: {assignment}"


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with all tables for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    await engine.dispose()


@pytest_asyncio.fixture
async def fake_llm() -> FakeLLMService:
    return FakeLLMService()


@pytest_asyncio.fixture
async def manager() -> SessionManager:
    return SessionManager()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_llm: FakeLLMService,
    manager: SessionManager,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB, LLM and session
    manager dependencies overridden.
    """

    async def _override_get_db():
        yield db_session

    def _factory(provider: Optional[str] = None) -> FakeLLMService:
        if provider:
            fake_llm.provider = provider
        return fake_llm

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_llm_factory] = lambda: _factory
    app.dependency_overrides[get_session_manager] = lambda: manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_document(paragraphs: int, words_per_paragraph: int, word: str = "word") -> str:
    """Text of ``paragraphs`` paragraphs separated by blank lines."""
    return "\n\n".join(
        " ".join(f"{word}{p}" for _ in range(words_per_paragraph)) for p in range(paragraphs)
    )


def upper_transform() -> Callable:
    async def _transform(text: str, context: TransformContext) -> str:
        return text.upper()

    return _transform


USER_HEADERS = {"X-User-Id": "1"}
USER2_HEADERS = {"X-User-Id": "2"}
