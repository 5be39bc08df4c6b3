"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import datetime
from enum import Enum


class LLMProviderSchema(str, Enum):
    """LLM providers accepted by the processing endpoints."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"
    OLLAMA = "ollama"


# ---------------------------------------------------------------------------
# Processing Schemas
# ---------------------------------------------------------------------------

class ProcessTextRequest(BaseModel):
    """Schema for POST /api/process-text and POST /api/sessions."""

    text: str = Field(..., min_length=1)
    instructions: str = Field(..., min_length=1)
    provider: Optional[LLMProviderSchema] = None
    content_source: str = ""
    use_content_source: bool = False


class ProcessTextResponse(BaseModel):
    """Schema for a synchronous rewrite result."""

    result: str
    provider: str


class ProcessChunkRequest(ProcessTextRequest):
    """Schema for POST /api/process-chunk."""

    chunk_index: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _index_within_total(self) -> "ProcessChunkRequest":
        if self.chunk_index >= self.total_chunks:
            raise ValueError("chunk_index must be less than total_chunks")
        return self


class ProcessChunkResponse(ProcessTextResponse):
    """Schema for a single rewritten chunk."""

    chunk_index: int
    total_chunks: int


class SolveHomeworkRequest(BaseModel):
    """Schema for POST /api/solve-homework."""

    assignment: str = Field(..., min_length=1)
    provider: Optional[LLMProviderSchema] = None


class EnhanceMathRequest(BaseModel):
    """Schema for POST /api/enhance-math."""

    text: str = Field(..., min_length=1)


class EnhanceMathResponse(BaseModel):
    text: str
    source: str = "latex-normalizer"


# ---------------------------------------------------------------------------
# Session Schemas
# ---------------------------------------------------------------------------

class ProcessingStatusSchema(BaseModel):
    """Live progress of a processing run."""

    is_processing: bool
    current_chunk: int
    total_chunks: int
    progress: int  # 0-100


class ChunkStatsSchema(BaseModel):
    """Word statistics over a session's chunks."""

    total_chunks: int
    total_words: int
    avg_words: int
    min_words: int
    max_words: int


class SessionCreateResponse(BaseModel):
    """Schema for POST /api/sessions."""

    session_id: str
    phase: str
    total_chunks: int
    total_words: int
    requires_selection: bool
    result: Optional[str] = None


class ChunkPreviewSchema(BaseModel):
    """One chunk in the selection list."""

    index: int
    preview: str
    word_count: int


class ChunkListResponse(BaseModel):
    """Schema for GET /api/sessions/{session_id}/chunks."""

    session_id: str
    chunks: List[ChunkPreviewSchema]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    stats: ChunkStatsSchema


class PatternSelectionRequest(BaseModel):
    """Schema for POST /api/sessions/{session_id}/selection/pattern.

    ``pattern`` is a named quick selection, or ``range`` together with
    ``start`` and ``end`` (inclusive).
    """

    pattern: str = Field(..., min_length=1)
    start: Optional[int] = None
    end: Optional[int] = None

    @model_validator(mode="after")
    def _range_bounds(self) -> "PatternSelectionRequest":
        if self.pattern == "range" and (self.start is None or self.end is None):
            raise ValueError("range selection requires start and end")
        return self


class SelectionResponse(BaseModel):
    """Resolved chunk indices."""

    indices: List[int]
    count: int


class ProcessSessionRequest(BaseModel):
    """Schema for POST /api/sessions/{session_id}/process."""

    selection: List[int]


class SessionStatusResponse(BaseModel):
    """Schema for GET /api/sessions/{session_id}/status."""

    session_id: str
    phase: str
    status: ProcessingStatusSchema
    selection: Optional[List[int]] = None
    result: str = ""
    error: Optional[str] = None
    elapsed_seconds: float


class CancelResponse(BaseModel):
    """Schema for POST /api/sessions/{session_id}/cancel."""

    session_id: str
    cancelled: bool


# ---------------------------------------------------------------------------
# Collaborator Schemas
# ---------------------------------------------------------------------------

class DetectAIRequest(BaseModel):
    """Schema for POST /api/detect-ai."""

    text: str = Field(..., min_length=1)
    provider: Optional[LLMProviderSchema] = None


class DetectAIResponse(BaseModel):
    """AI-content verdict."""

    is_ai: bool
    confidence: float
    details: str
    source: str


class TranscriptionResponse(BaseModel):
    """Schema for POST /api/transcribe."""

    text: str


class ExtractResponse(BaseModel):
    """Schema for POST /api/files/extract."""

    filename: str
    text: str
    metadata: Dict[str, Any]


class ExportRequest(BaseModel):
    """Schema for POST /api/export/{format}."""

    content: str = Field(..., min_length=1)
    filename: str = Field("document", max_length=200)


class ChartRequest(BaseModel):
    """Schema for POST /api/charts."""

    chart_type: Literal["line", "bar", "scatter"] = "line"
    x: List[Union[float, str]] = Field(..., min_length=1)
    y: List[float] = Field(..., min_length=1)
    title: str = ""
    x_label: str = "X Axis"
    y_label: str = "Y Axis"


class ChartResponse(BaseModel):
    """Uploaded chart location."""

    url: str
    filename: str


class EmailRequest(BaseModel):
    """Schema for POST /api/send-email."""

    to: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    subject: str = Field(..., min_length=1, max_length=255)
    message: str = ""
    original_text: str = Field(..., min_length=1)
    transformed_text: str = Field(..., min_length=1)


class EmailResponse(BaseModel):
    success: bool


# ---------------------------------------------------------------------------
# Saved Instruction / Document Schemas
# ---------------------------------------------------------------------------

class InstructionCreate(BaseModel):
    """Schema for saving a named instruction set."""

    name: str = Field(..., min_length=1, max_length=255)
    instructions: str = Field(..., min_length=1)


class InstructionResponse(BaseModel):
    """Schema for saved instruction responses."""

    id: int
    user_id: int
    name: str
    instructions: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentCreate(BaseModel):
    """Schema for saving an input/output document pair."""

    title: str = Field(..., min_length=1, max_length=255)
    input_text: str = Field(..., min_length=1)
    output_text: Optional[str] = None
    instructions: Optional[str] = None
    content_source: Optional[str] = None
    llm_provider: LLMProviderSchema = LLMProviderSchema.OPENAI


class DocumentSummary(BaseModel):
    """Schema for document list entries."""

    id: int
    title: str
    llm_provider: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(DocumentSummary):
    """Schema for a full saved document."""

    user_id: int
    input_text: str
    output_text: Optional[str] = None
    instructions: Optional[str] = None
    content_source: Optional[str] = None


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check endpoint."""

    status: str
    database: str
    providers: Dict[str, bool]
    default_provider: str
    timestamp: datetime
    version: str = "0.1.0"
