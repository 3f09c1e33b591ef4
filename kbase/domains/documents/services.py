from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from kbase.core.errors import AccessDenied, AuthenticationRequired, KBaseError, VersionHistoryIncomplete
from kbase.db.repositories.document_repository import DocumentRepository
from kbase.domains.access.entities import Permission
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.services import CollaboratorService
from kbase.domains.documents.entities import Document
from kbase.domains.documents.schemas import DocumentCreate, DocumentUpdate
from kbase.domains.documents.versioning import VersionManager, EditResult
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)


@dataclass
class DocumentView:
    """Документ, доступный текущему пользователю"""
    document: Document
    permission: Permission
    is_author: bool
    has_collaborators: bool

    @property
    def can_edit(self) -> bool:
        return self.permission is Permission.EDIT


class DocumentService:
    """Сервис для работы с документами"""

    def __init__(self, session: AsyncSession, version_manager: Optional[VersionManager] = None):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.access_service = AccessControlService(session)
        self.collaborator_service = CollaboratorService(session)
        self.version_manager = version_manager or VersionManager(session)

    async def create_document(self, document_data: DocumentCreate, current_user: Optional[User]) -> Document:
        """Создание нового документа вместе с версией 1

        Общей транзакции на документ и историю нет: если версия не
        записалась, документ остается и поднимается VersionHistoryIncomplete.
        """
        if current_user is None:
            raise AuthenticationRequired()

        document = Document.create_document(
            title=document_data.title,
            author_id=current_user.uuid,
            content=document_data.content,
            is_public=document_data.is_public
        )
        created_document = await self.document_repository.create(document)

        try:
            await self.version_manager.create_initial_version(created_document)
        except (KBaseError, IntegrityError) as e:
            logger.error(f"Document {created_document.uuid} created without initial version: {e}")
            raise VersionHistoryIncomplete(created_document.uuid) from e

        logger.info(f"User {current_user.uuid} created document {created_document.uuid}")
        return created_document

    async def get_document_view(self, document_id: uuid.UUID, current_user: Optional[User]) -> DocumentView:
        """Просмотр документа

        При отсутствии доступа поднимается AccessDenied без каких-либо
        данных документа.
        """
        document = await self.access_service.get_document(document_id)
        permission = await self.access_service.require_view(document, current_user)

        return DocumentView(
            document=document,
            permission=permission,
            is_author=current_user is not None and document.is_author(current_user.uuid),
            has_collaborators=await self.collaborator_service.has_any_collaborator(document.uuid)
        )

    async def update_document(
        self,
        document_id: uuid.UUID,
        update_data: DocumentUpdate,
        current_user: Optional[User]
    ) -> EditResult:
        """Явное сохранение; версия фиксируется по тому же окну, что и автосохранение"""
        return await self.version_manager.record_edit(
            document_id,
            current_user,
            content=update_data.content,
            title=update_data.title,
            is_public=update_data.is_public,
            auto=False
        )

    async def delete_document(self, document_id: uuid.UUID, current_user: Optional[User]) -> None:
        """Удаление документа (только автор)"""
        if current_user is None:
            raise AuthenticationRequired()

        document = await self.access_service.get_document(document_id)
        if not document.is_author(current_user.uuid):
            raise AccessDenied("Only the author can delete this document")

        await self.document_repository.delete(document.uuid)
        logger.info(f"User {current_user.uuid} deleted document {document.uuid}")
