"""
User identification for saved instructions and documents.

The frontend may send an X-User-Id header; anonymous requests fall back to
DEFAULT_USER_ID.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from app.config import settings

logger = logging.getLogger(__name__)


async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> int:
    """Numeric user id from the request header, or the anonymous default."""
    if not x_user_id:
        return settings.DEFAULT_USER_ID
    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning("Rejected non-numeric X-User-Id %r", x_user_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header must be an integer.",
        )
    if user_id < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header must be positive.",
        )
    return user_id
