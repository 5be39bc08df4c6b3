"""
E-mail delivery of an original/transformed text pair via SendGrid v3.
"""
from __future__ import annotations

import html
import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class EmailServiceError(RuntimeError):
    """SendGrid not configured or refused the message."""


def _render_body(message: str, original_text: str, transformed_text: str) -> str:
    parts = []
    if message:
        parts.append(f"<p>{html.escape(message)}</p>")
    parts.append("<h2>Original Text</h2>")
    parts.append(f"<div style=\"white-space: pre-wrap\">{html.escape(original_text)}</div>")
    parts.append("<h2>Transformed Text</h2>")
    parts.append(f"<div style=\"white-space: pre-wrap\">{html.escape(transformed_text)}</div>")
    return "\n".join(parts)


async def send_document_email(
    to: str,
    subject: str,
    original_text: str,
    transformed_text: str,
    message: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Send both texts to ``to``.  Returns True once SendGrid accepts the message.

    Raises:
        ValueError:        Missing texts.
        EmailServiceError: Missing key or provider failure.
    """
    if not original_text or not transformed_text:
        raise ValueError("Original and transformed text are required")
    if not settings.SENDGRID_API_KEY:
        raise EmailServiceError("SendGrid API key not configured")

    plain = f"{message}\n\nOriginal Text:\n{original_text}\n\nTransformed Text:\n{transformed_text}".lstrip()
    payload = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": settings.SENDGRID_FROM_EMAIL},
        "subject": subject,
        "content": [
            {"type": "text/plain", "value": plain},
            {"type": "text/html", "value": _render_body(message, original_text, transformed_text)},
        ],
    }

    try:
        async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
            resp = await client.post(
                f"{settings.SENDGRID_BASE_URL}/mail/send",
                headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
                json=payload,
            )
    except httpx.HTTPError as exc:
        raise EmailServiceError(f"Failed to send email: {exc}") from exc

    if resp.status_code not in (200, 202):
        logger.error("SendGrid HTTP %d: %s", resp.status_code, resp.text[:300])
        raise EmailServiceError(f"Failed to send email: HTTP {resp.status_code}")

    logger.info("Email sent to %s", to)
    return True
