"""
Service providers for FastAPI routes.

Routes never construct LLM clients, parsers or HTTP transports themselves, so
tests can swap any of them with ``app.dependency_overrides``.
"""
from __future__ import annotations

from typing import Callable, Optional

import httpx

from app.services.document_parser import DocumentParser
from app.services.llm_service import RewriteLLMService
from app.services.session_manager import SessionManager, session_manager

LLMServiceFactory = Callable[[Optional[str]], RewriteLLMService]


def get_llm_factory() -> LLMServiceFactory:
    """Callable building a RewriteLLMService for a provider name (None = default)."""
    return RewriteLLMService


def get_session_manager() -> SessionManager:
    return session_manager


def get_document_parser() -> DocumentParser:
    return DocumentParser()


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound collaborator calls; None means the real network."""
    return None
