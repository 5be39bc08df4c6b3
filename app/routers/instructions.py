"""
Saved instruction sets.

POST   /  : save a named instruction set.
GET    /  : list the caller's instruction sets, newest first.
DELETE /{id}  : delete one.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_user_id
from app.models.database_models import SavedInstruction
from app.models.schemas import InstructionCreate, InstructionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=InstructionResponse, status_code=status.HTTP_201_CREATED)
async def save_instructions(
    body: InstructionCreate,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> SavedInstruction:
    saved = SavedInstruction(user_id=user_id, name=body.name, instructions=body.instructions)
    db.add(saved)
    await db.flush()
    await db.refresh(saved)

    logger.info("Saved instructions id=%d name=%r for user=%d", saved.id, saved.name, user_id)
    return saved


@router.get("", response_model=List[InstructionResponse])
async def list_instructions(
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[SavedInstruction]:
    result = await db.execute(
        select(SavedInstruction)
        .where(SavedInstruction.user_id == user_id)
        .order_by(SavedInstruction.created_at.desc(), SavedInstruction.id.desc())
    )
    return list(result.scalars().all())


@router.delete(
    "/{instruction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_instructions(
    instruction_id: int,
    user_id: int = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> None:
    result = await db.execute(
        select(SavedInstruction).where(
            SavedInstruction.id == instruction_id,
            SavedInstruction.user_id == user_id,
        )
    )
    saved = result.scalar_one_or_none()
    if saved is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Instructions {instruction_id} not found.",
        )

    await db.delete(saved)
    await db.flush()
    logger.info("Deleted instructions id=%d", instruction_id)
