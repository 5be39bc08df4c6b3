"""
Saved documents (input text + rewritten output).

POST   /  : save a document.
GET    /  : list the caller's documents (summaries, newest first).
GET    /{id}  : full document.
DELETE /{id}  : delete a document.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_user_id
from app.models.database_models import SavedDocument
from app.models.schemas import DocumentCreate, DocumentResponse, DocumentSummary

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_owned_document(db: AsyncSession, document_id: int, user_id: int) -> SavedDocument:
    result = await db.execute(
        select(SavedDocument).where(
            SavedDocument.id == document_id,
            SavedDocument.user_id == user_id,
        )
    )
    document = result.scalar_one_or_none()
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found.",
        )
    return document


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def save_document(
    body: DocumentCreate,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> SavedDocument:
    document = SavedDocument(
        user_id=user_id,
        title=body.title,
        input_text=body.input_text,
        output_text=body.output_text,
        instructions=body.instructions,
        content_source=body.content_source,
        llm_provider=body.llm_provider.value,
    )
    db.add(document)
    await db.flush()
    await db.refresh(document)

    logger.info("Saved document id=%d title=%r for user=%d", document.id, document.title, user_id)
    return document


@router.get("", response_model=List[DocumentSummary])
async def list_documents(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[SavedDocument]:
    result = await db.execute(
        select(SavedDocument)
        .where(SavedDocument.user_id == user_id)
        .order_by(SavedDocument.created_at.desc(), SavedDocument.id.desc())
    )
    return list(result.scalars().all())


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> SavedDocument:
    return await _get_owned_document(db, document_id, user_id)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_document(
    document_id: int,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    document = await _get_owned_document(db, document_id, user_id)
    await db.delete(document)
    await db.flush()
    logger.info("Deleted document id=%d", document_id)
