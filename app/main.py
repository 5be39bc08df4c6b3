"""
Rewrite Assistant API.

Wires configuration, logging, the database lifespan, CORS, request timing and
the routers together.  Run with ``uvicorn app.main:app`` or ``python -m app.main``.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db, init_db
from app.routers import assist, documents, export, files, health, instructions, processing, sessions
from app.services.llm_service import SUPPORTED_PROVIDERS

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Frontends poll these continuously; timing them would drown the log
_UNLOGGED_PATHS = {"/", "/api/health"}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

def _provider_report() -> None:
    """Warn about providers that cannot serve requests.  Never raises."""
    keys = {
        "openai": settings.OPENAI_API_KEY,
        "anthropic": settings.ANTHROPIC_API_KEY,
        "perplexity": settings.PERPLEXITY_API_KEY,
    }
    missing = [name for name, key in keys.items() if not key]
    if missing:
        logger.warning("No API key for: %s", ", ".join(missing))

    default = settings.DEFAULT_LLM_PROVIDER
    if default not in SUPPORTED_PROVIDERS:
        logger.warning("DEFAULT_LLM_PROVIDER=%r is not one of %s", default, ", ".join(SUPPORTED_PROVIDERS))
    elif default in missing:
        logger.warning("Default provider %r has no API key; requests without a provider will fail", default)
    else:
        logger.info("Default LLM provider: %s", default)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await init_db()
    except Exception as exc:
        logger.error("Database unavailable at startup: %s", exc)
        raise
    _provider_report()
    logger.info(
        "Rewrite Assistant %s listening on %s:%d (chunk size %d words)",
        settings.APP_VERSION,
        settings.HOST,
        settings.PORT,
        settings.CHUNK_SIZE_WORDS,
    )

    yield

    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Rewrite Assistant API",
    description=(
        "Rewrite text with OpenAI, Anthropic, Perplexity or Ollama.\n\n"
        "Short texts go straight to `POST /api/process-text`. Longer documents "
        "are posted to `/api/sessions`, split into paragraph-aligned chunks, "
        "and rewritten chunk by chunk over a chosen selection while the client "
        "polls `/api/sessions/{id}/status`."
    ),
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Middleware and error handling
# ---------------------------------------------------------------------------

@app.middleware("http")
async def time_requests(request: Request, call_next):
    """Stamp ``X-Process-Time`` on every response and log the slow-path requests."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    path = request.url.path
    if path not in _UNLOGGED_PATHS and not path.endswith("/status"):
        logger.info("%s %s %d %.1fms", request.method, path, response.status_code, elapsed_ms)

    response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"
    return response


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": request.url.path,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

app.include_router(health.router,       prefix="/api/health",       tags=["Health"])
app.include_router(processing.router,   prefix="/api",              tags=["Processing"])
app.include_router(sessions.router,     prefix="/api/sessions",     tags=["Sessions"])
app.include_router(assist.router,       prefix="/api",              tags=["Assist"])
app.include_router(files.router,        prefix="/api/files",        tags=["Files"])
app.include_router(export.router,       prefix="/api/export",       tags=["Export"])
app.include_router(instructions.router, prefix="/api/instructions", tags=["Instructions"])
app.include_router(documents.router,    prefix="/api/documents",    tags=["Documents"])


@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": "Rewrite Assistant API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=True)
