"""
Document Service
================
Database access for accounts, generated artifacts and writing suggestions.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database.models import ARTIFACT_KINDS, DocumentModel, SuggestionModel, UserModel
from database.session import get_session_factory
from exceptions import UserNotFoundError, ValidationError
from logging_config import get_logger
from services.auth_tokens import PasswordHasher

logger = get_logger(__name__)


class DocumentService:
    """
    Query functions for users and documents.

    Usage:
        async with DocumentService() as service:
            users = await service.get_user("someone@example.com")

    Or with an existing session:
        service = DocumentService.from_session(session)
        document = await service.get_document_by_id(document_id)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        password_hasher: Optional[PasswordHasher] = None,
    ):
        """
        Initialize the Document Service.

        Args:
            database_url: SQLAlchemy async database URL (default from settings).
            password_hasher: Hasher used by create_user/update_user_password.
        """
        self._database_url = database_url or get_settings().database_url
        self._hasher = password_hasher
        self._session: Optional[AsyncSession] = None
        self._owns_session = True

    @classmethod
    def from_session(
        cls,
        session: AsyncSession,
        password_hasher: Optional[PasswordHasher] = None,
    ) -> "DocumentService":
        """Create a DocumentService participating in an external transaction."""
        instance = cls.__new__(cls)
        instance._database_url = None
        instance._hasher = password_hasher
        instance._session = session
        instance._owns_session = False
        return instance

    async def __aenter__(self) -> "DocumentService":
        if self._owns_session:
            self._session = get_session_factory(self._database_url)()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_session and self._session:
            if exc_type is not None:
                await self._session.rollback()
            else:
                await self._session.commit()
            await self._session.close()

    @property
    def hasher(self) -> PasswordHasher:
        if self._hasher is None:
            self._hasher = PasswordHasher()
        return self._hasher

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, email: str) -> List[UserModel]:
        """
        Look up accounts by exact email match.

        Returns:
            Matching users (empty list when none).
        """
        stmt = select(UserModel).where(UserModel.email == email)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_user_by_id(self, user_id: str) -> Optional[UserModel]:
        result = await self._session.execute(select(UserModel).where(UserModel.id == user_id))
        return result.scalar_one_or_none()

    async def create_user(self, email: str, password: Optional[str] = None) -> UserModel:
        """Create an account; ``password`` is hashed before storage."""
        user = UserModel(
            email=email,
            password=self.hasher.hash(password) if password else None,
        )
        self._session.add(user)
        await self._session.flush()
        logger.info("Created user", user_id=user.id)
        return user

    async def update_user_password(self, user_id: str, new_password: str) -> None:
        """
        Hash and store a new password.

        Raises:
            UserNotFoundError: No account with this id
        """
        hashed = self.hasher.hash(new_password)
        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(password=hashed)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise UserNotFoundError()
        logger.info("Updated user password", user_id=user_id)

    # =========================================================================
    # Documents
    # =========================================================================

    async def save_document(
        self,
        id: str,
        title: str,
        kind: str,
        content: str,
        user_id: str,
    ) -> DocumentModel:
        """Append a new version of a document."""
        if kind not in ARTIFACT_KINDS:
            raise ValidationError(f"Unsupported document kind: {kind}", field="kind", value=kind)

        document = DocumentModel(
            id=id,
            title=title,
            kind=kind,
            content=content,
            user_id=user_id,
            created_at=datetime.utcnow(),
        )
        self._session.add(document)
        await self._session.flush()
        logger.info("Saved document", document_id=id, kind=kind, content_length=len(content or ""))
        return document

    async def get_document_by_id(self, id: str) -> Optional[DocumentModel]:
        """Latest version of a document, or None."""
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.id == id)
            .order_by(DocumentModel.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_documents_by_id(self, id: str) -> List[DocumentModel]:
        """All versions of a document, oldest first."""
        stmt = (
            select(DocumentModel)
            .where(DocumentModel.id == id)
            .order_by(DocumentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # =========================================================================
    # Suggestions
    # =========================================================================

    async def save_suggestions(self, suggestions: List[SuggestionModel]) -> None:
        self._session.add_all(suggestions)
        await self._session.flush()
        logger.info("Saved suggestions", count=len(suggestions))

    async def get_suggestions_by_document_id(self, document_id: str) -> List[SuggestionModel]:
        stmt = (
            select(SuggestionModel)
            .where(SuggestionModel.document_id == document_id)
            .order_by(SuggestionModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
