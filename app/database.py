"""
Database engine, sessions and the declarative base.

Saved instruction sets and saved documents are the only persisted state;
chunking sessions live in memory (see app/services/session_manager.py).
Production runs on PostgreSQL through asyncpg; the test suite points
DATABASE_URL at an in-memory SQLite database through aiosqlite.
"""
import logging
from typing import AsyncGenerator, Dict, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: Dict[str, Any] = {"echo": settings.DATABASE_ECHO, "poolclass": NullPool}
    if not url.startswith("sqlite"):
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for saved instructions and saved documents."""


# ---------------------------------------------------------------------------
# Request-scoped session
# ---------------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    The session commits when the route returns normally and rolls back when
    it raises, so routes only ever ``flush``.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error("Rolled back request session: %s", exc)
            raise


async def database_status(session: AsyncSession) -> str:
    """``"ok"`` when a trivial query succeeds, ``"error"`` otherwise."""
    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Database health check failed: %s", exc)
        return "error"
    return "ok"


# ---------------------------------------------------------------------------
# Lifespan hooks
# ---------------------------------------------------------------------------

async def init_db() -> None:
    """Create the saved_instructions and saved_documents tables if missing."""
    from app.models import database_models  # noqa: F401  (registers the tables)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables verified: %s", ", ".join(sorted(Base.metadata.tables)))


async def close_db() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
