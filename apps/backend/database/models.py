"""
Database Models
===============
SQLAlchemy models for accounts, generated artifacts and writing suggestions.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    String,
    DateTime,
    Text,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


ARTIFACT_KINDS = ("text", "code", "image", "sheet", "html", "svg", "diagram")


def _new_id() -> str:
    return str(uuid4())


class UserModel(Base):
    """
    Application account.

    Attributes:
        id: Unique user identifier (UUID string)
        email: Login email, unique
        password: bcrypt hash, NULL for guest accounts
        created_at: Timestamp of record creation
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(64), nullable=False, unique=True, index=True)
    password = Column(String(64), nullable=True, doc="bcrypt hash")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<UserModel(id={self.id})>"


class DocumentModel(Base):
    """
    Generated artifact content.

    Every save appends a new version; the (id, created_at) pair is the key
    and the newest row for an id is the current document.
    """
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(DateTime, primary_key=True, default=datetime.utcnow)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=True)
    kind = Column(String(16), nullable=False, default="text")
    user_id = Column(String(36), nullable=False, index=True)

    __table_args__ = (
        Index("ix_documents_id_created_at", "id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DocumentModel(id={self.id}, kind='{self.kind}', title='{self.title[:30]}')>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "kind": self.kind,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class SuggestionModel(Base):
    """
    Writing suggestion attached to one version of a document.

    ``document_id`` and ``document_created_at`` together identify the
    version the suggestion was made against.
    """
    __tablename__ = "suggestions"

    id = Column(String(36), primary_key=True, default=_new_id)
    document_id = Column(String(36), nullable=False, index=True)
    document_created_at = Column(DateTime, nullable=False)
    original_text = Column(Text, nullable=False)
    suggested_text = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(36), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "documentCreatedAt": self.document_created_at.isoformat() if self.document_created_at else None,
            "originalText": self.original_text,
            "suggestedText": self.suggested_text,
            "description": self.description,
            "isResolved": bool(self.is_resolved),
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
