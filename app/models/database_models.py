"""
SQLAlchemy ORM models for saved rewrite instructions and documents.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from app.database import Base


class SavedInstruction(Base):
    """A named, reusable set of rewrite instructions."""

    __tablename__ = "saved_instructions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    instructions = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<SavedInstruction(id={self.id}, name='{self.name}')>"


class SavedDocument(Base):
    """An input text together with its rewritten output."""

    __tablename__ = "saved_documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    input_text = Column(Text, nullable=False)
    output_text = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    content_source = Column(Text, nullable=True)
    llm_provider = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<SavedDocument(id={self.id}, title='{self.title}')>"
