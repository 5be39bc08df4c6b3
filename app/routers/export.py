"""
Document export.

POST /{fmt}  : download content as txt, html, latex, docx or pdf.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response, status

from app.models.schemas import ExportRequest
from app.services.export_service import EXPORTERS, export_content

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{fmt}", response_class=Response)
async def export_document(fmt: str, body: ExportRequest) -> Response:
    if fmt.lower() not in EXPORTERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported export format '{fmt}'. Accepted: {', '.join(EXPORTERS)}",
        )
    try:
        data, media_type, filename = export_content(body.content, fmt, body.filename)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RuntimeError as exc:
        logger.error("Export failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
