"""
File text extraction.

POST /extract  : upload a PDF, DOCX, TXT or image and get its plain text back.
"""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.config import settings
from app.dependencies.services import get_document_parser
from app.models.schemas import ExtractResponse
from app.services.document_parser import DocumentParser

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/extract", response_model=ExtractResponse)
async def extract_file(
    file: UploadFile = File(...),
    parser: DocumentParser = Depends(get_document_parser),
) -> ExtractResponse:
    """
    Extract text from an uploaded file.

    - Max file size: 50 MB (configurable via MAX_FILE_SIZE)
    - Nothing is stored; the text is returned for the editor
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported file type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
            ),
        )

    data = await file.read()
    if len(data) > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB size limit.",
        )

    try:
        extracted = await parser.extract(file.filename, data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RuntimeError as exc:
        logger.warning("Could not extract %r: %s", file.filename, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    return ExtractResponse(filename=file.filename, text=extracted.text, metadata=extracted.metadata)
