"""
GET /api/health  : database reachability and which LLM providers are usable.
"""
from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import database_status, get_db
from app.models.schemas import HealthCheckResponse

router = APIRouter()


def _configured_providers() -> Dict[str, bool]:
    # Ollama needs no key, only a reachable base URL
    return {
        "openai": bool(settings.OPENAI_API_KEY),
        "anthropic": bool(settings.ANTHROPIC_API_KEY),
        "perplexity": bool(settings.PERPLEXITY_API_KEY),
        "ollama": bool(settings.OLLAMA_BASE_URL),
    }


@router.get("", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """``healthy`` needs a working database and credentials for the default provider."""
    db_status = await database_status(db)
    providers = _configured_providers()
    ready = db_status == "ok" and providers.get(settings.DEFAULT_LLM_PROVIDER, False)

    return HealthCheckResponse(
        status="healthy" if ready else "degraded",
        database=db_status,
        providers=providers,
        default_provider=settings.DEFAULT_LLM_PROVIDER,
        timestamp=datetime.utcnow(),
        version=settings.APP_VERSION,
    )
