"""Database and schema models for the Rewrite Assistant."""
from app.models.database_models import (
    SavedInstruction,
    SavedDocument,
)
from app.models.schemas import (
    ProcessTextRequest,
    ProcessTextResponse,
    SessionStatusResponse,
    InstructionResponse,
    DocumentResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "SavedInstruction",
    "SavedDocument",
    # Pydantic schemas
    "ProcessTextRequest",
    "ProcessTextResponse",
    "SessionStatusResponse",
    "InstructionResponse",
    "DocumentResponse",
    "HealthCheckResponse",
]
