from typing import Optional, List, Dict, Iterable, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
import uuid

from kbase.core.errors import ValidationFailed
from kbase.db.models.document import Document as DocumentModel, DocumentVersion as DocumentVersionModel
from kbase.db.models.collaboration import DocumentCollaborator as DocumentCollaboratorModel, Notification as NotificationModel
from kbase.db.repositories.base import guard_backend

if TYPE_CHECKING:
    from kbase.domains.documents.entities import Document, DocumentVersion


class DocumentRepository:
    """Репозиторий для работы с документами"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @guard_backend
    async def create(self, document: "Document") -> "Document":
        """Создание нового документа"""
        db_document = DocumentModel(
            uuid=document.uuid,
            title=document.title,
            content=document.content,
            author_id=document.author_id,
            is_public=document.is_public,
            current_version=document.current_version,
            created_at=document.created_at,
            updated_at=document.updated_at
        )

        self.session.add(db_document)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValidationFailed("Invalid author_id")
        await self.session.refresh(db_document)
        return self._to_domain(db_document)

    @guard_backend
    async def get_by_uuid(self, document_uuid: uuid.UUID) -> Optional["Document"]:
        """Получение документа по UUID"""
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.uuid == document_uuid)
        )
        db_document = result.scalar_one_or_none()
        return self._to_domain(db_document) if db_document else None

    @guard_backend
    async def list_public(self) -> List["Document"]:
        """Все публичные документы"""
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.is_public.is_(True))
        )
        return [self._to_domain(doc) for doc in result.scalars().all()]

    @guard_backend
    async def list_by_author(self, author_id: uuid.UUID) -> List["Document"]:
        """Документы автора"""
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.author_id == author_id)
        )
        return [self._to_domain(doc) for doc in result.scalars().all()]

    @guard_backend
    async def list_by_uuids(self, document_uuids: Iterable[uuid.UUID]) -> List["Document"]:
        """Документы по списку UUID одним запросом"""
        ids = set(document_uuids)
        if not ids:
            return []
        result = await self.session.execute(
            select(DocumentModel).where(DocumentModel.uuid.in_(ids))
        )
        return [self._to_domain(doc) for doc in result.scalars().all()]

    @guard_backend
    async def update(self, document: "Document", commit: bool = True) -> "Document":
        """Обновление документа

        С commit=False изменение остается в текущей транзакции, чтобы
        зафиксировать его вместе с новой версией.
        """
        await self.session.execute(
            update(DocumentModel)
            .where(DocumentModel.uuid == document.uuid)
            .values(
                title=document.title,
                content=document.content,
                is_public=document.is_public,
                current_version=document.current_version,
                updated_at=document.updated_at
            )
        )
        if commit:
            await self.session.commit()
        return document

    @guard_backend
    async def delete(self, document_uuid: uuid.UUID) -> bool:
        """Удаление документа вместе с доступами, версиями и уведомлениями"""
        for model in (NotificationModel, DocumentCollaboratorModel, DocumentVersionModel):
            await self.session.execute(delete(model).where(model.document_id == document_uuid))
        result = await self.session.execute(
            delete(DocumentModel).where(DocumentModel.uuid == document_uuid)
        )
        await self.session.commit()
        return result.rowcount > 0

    def _to_domain(self, db_document: DocumentModel) -> "Document":
        """Преобразование модели БД в доменную сущность"""
        from kbase.domains.documents.entities import Document

        return Document(
            uuid=db_document.uuid,
            title=db_document.title,
            content=db_document.content or "",
            author_id=db_document.author_id,
            is_public=bool(db_document.is_public),
            current_version=db_document.current_version,
            created_at=db_document.created_at,
            updated_at=db_document.updated_at
        )


class DocumentVersionRepository:
    """Репозиторий для работы с версиями документов (только вставка)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @guard_backend
    async def create(self, version: "DocumentVersion") -> "DocumentVersion":
        """Создание новой версии документа

        Фиксирует транзакцию. При коллизии номера версии транзакция
        откатывается целиком и IntegrityError уходит вызывающему.
        """
        db_version = DocumentVersionModel(
            uuid=version.uuid,
            document_id=version.document_id,
            version=version.version,
            content=version.content,
            author_id=version.author_id,
            changes=version.changes,
            created_at=version.created_at
        )

        self.session.add(db_version)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise
        await self.session.refresh(db_version)
        return self._to_domain(db_version)

    @guard_backend
    async def get_by_document(self, document_id: uuid.UUID) -> List["DocumentVersion"]:
        """Получение всех версий документа, новые первыми"""
        result = await self.session.execute(
            select(DocumentVersionModel)
            .where(DocumentVersionModel.document_id == document_id)
            .order_by(DocumentVersionModel.version.desc())
        )
        return [self._to_domain(version) for version in result.scalars().all()]

    @guard_backend
    async def get_latest_version(self, document_id: uuid.UUID) -> Optional["DocumentVersion"]:
        """Получение последней версии документа"""
        result = await self.session.execute(
            select(DocumentVersionModel)
            .where(DocumentVersionModel.document_id == document_id)
            .order_by(DocumentVersionModel.version.desc())
            .limit(1)
        )
        db_version = result.scalar_one_or_none()
        return self._to_domain(db_version) if db_version else None

    @guard_backend
    async def get_latest_number(self, document_id: uuid.UUID) -> int:
        """Максимальный номер версии документа (0, если версий нет)"""
        result = await self.session.execute(
            select(func.max(DocumentVersionModel.version))
            .where(DocumentVersionModel.document_id == document_id)
        )
        return result.scalar() or 0

    @guard_backend
    async def get_latest_numbers(self, document_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
        """Максимальные номера версий для набора документов одним запросом"""
        ids = set(document_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(DocumentVersionModel.document_id, func.max(DocumentVersionModel.version))
            .where(DocumentVersionModel.document_id.in_(ids))
            .group_by(DocumentVersionModel.document_id)
        )
        return {document_id: number for document_id, number in result.all()}

    @guard_backend
    async def get_version_by_number(
        self,
        document_id: uuid.UUID,
        version_number: int
    ) -> Optional["DocumentVersion"]:
        """Получение версии по номеру"""
        result = await self.session.execute(
            select(DocumentVersionModel).where(
                DocumentVersionModel.document_id == document_id,
                DocumentVersionModel.version == version_number
            )
        )
        db_version = result.scalar_one_or_none()
        return self._to_domain(db_version) if db_version else None

    @guard_backend
    async def count_by_document(self, document_id: uuid.UUID) -> int:
        """Подсчет количества версий документа"""
        result = await self.session.execute(
            select(func.count(DocumentVersionModel.uuid))
            .where(DocumentVersionModel.document_id == document_id)
        )
        return result.scalar()

    def _to_domain(self, db_version: DocumentVersionModel) -> "DocumentVersion":
        """Преобразование модели БД в доменную сущность"""
        from kbase.domains.documents.entities import DocumentVersion

        return DocumentVersion(
            uuid=db_version.uuid,
            document_id=db_version.document_id,
            version=db_version.version,
            content=db_version.content,
            author_id=db_version.author_id,
            changes=db_version.changes,
            created_at=db_version.created_at
        )
