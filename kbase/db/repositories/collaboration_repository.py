from typing import Optional, List, Set, Iterable, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
import uuid

from kbase.db.models.collaboration import (
    DocumentCollaborator as DocumentCollaboratorModel,
    Notification as NotificationModel,
    PermissionLevel,
    NotificationType
)
from kbase.db.models.user import User as UserModel
from kbase.db.repositories.base import guard_backend

if TYPE_CHECKING:
    from kbase.domains.collaboration.entities import CollaboratorGrant, Notification


class CollaboratorRepository:
    """Репозиторий для работы с доступами соавторов"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @guard_backend
    async def create(self, grant: "CollaboratorGrant") -> "CollaboratorGrant":
        """Создание доступа. IntegrityError означает, что пара уже существует"""
        db_grant = DocumentCollaboratorModel(
            uuid=grant.uuid,
            document_id=grant.document_id,
            user_id=grant.user_id,
            permission=PermissionLevel(grant.permission),
            added_by=grant.added_by
        )

        self.session.add(db_grant)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise
        await self.session.refresh(db_grant)
        return self._to_domain(db_grant)

    @guard_backend
    async def get_by_uuid(self, grant_uuid: uuid.UUID) -> Optional["CollaboratorGrant"]:
        """Получение доступа по UUID"""
        result = await self.session.execute(
            select(DocumentCollaboratorModel).where(DocumentCollaboratorModel.uuid == grant_uuid)
        )
        db_grant = result.scalar_one_or_none()
        return self._to_domain(db_grant) if db_grant else None

    @guard_backend
    async def get_by_document_and_user(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID
    ) -> Optional["CollaboratorGrant"]:
        """Получение доступа по документу и пользователю"""
        result = await self.session.execute(
            select(DocumentCollaboratorModel).where(
                DocumentCollaboratorModel.document_id == document_id,
                DocumentCollaboratorModel.user_id == user_id
            )
        )
        db_grant = result.scalar_one_or_none()
        return self._to_domain(db_grant) if db_grant else None

    @guard_backend
    async def get_by_document(self, document_id: uuid.UUID) -> List["CollaboratorGrant"]:
        """Доступы к документу вместе с данными профилей"""
        result = await self.session.execute(
            select(DocumentCollaboratorModel, UserModel.username, UserModel.email)
            .join(UserModel, UserModel.uuid == DocumentCollaboratorModel.user_id)
            .where(DocumentCollaboratorModel.document_id == document_id)
            .order_by(DocumentCollaboratorModel.created_at.asc())
        )
        return [
            self._to_domain(db_grant, username=username, email=email)
            for db_grant, username, email in result.all()
        ]

    @guard_backend
    async def get_by_user(
        self,
        user_id: uuid.UUID,
        document_ids: Optional[Iterable[uuid.UUID]] = None
    ) -> List["CollaboratorGrant"]:
        """Доступы, выданные пользователю; при document_ids только к этим документам"""
        query = select(DocumentCollaboratorModel).where(DocumentCollaboratorModel.user_id == user_id)
        if document_ids is not None:
            ids = set(document_ids)
            if not ids:
                return []
            query = query.where(DocumentCollaboratorModel.document_id.in_(ids))
        result = await self.session.execute(query)
        return [self._to_domain(db_grant) for db_grant in result.scalars().all()]

    @guard_backend
    async def get_document_ids_with_collaborators(self, document_ids: Iterable[uuid.UUID]) -> Set[uuid.UUID]:
        """Какие из документов имеют хотя бы одного соавтора (один запрос)"""
        ids = set(document_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(DocumentCollaboratorModel.document_id)
            .where(DocumentCollaboratorModel.document_id.in_(ids))
            .distinct()
        )
        return set(result.scalars().all())

    @guard_backend
    async def update_permission(self, grant_uuid: uuid.UUID, permission: str) -> Optional["CollaboratorGrant"]:
        """Изменение уровня доступа"""
        await self.session.execute(
            update(DocumentCollaboratorModel)
            .where(DocumentCollaboratorModel.uuid == grant_uuid)
            .values(permission=PermissionLevel(permission))
        )
        await self.session.commit()
        return await self.get_by_uuid(grant_uuid)

    @guard_backend
    async def delete(self, grant_uuid: uuid.UUID) -> bool:
        """Удаление доступа"""
        result = await self.session.execute(
            delete(DocumentCollaboratorModel).where(DocumentCollaboratorModel.uuid == grant_uuid)
        )
        await self.session.commit()
        return result.rowcount > 0

    def _to_domain(
        self,
        db_grant: DocumentCollaboratorModel,
        username: Optional[str] = None,
        email: Optional[str] = None
    ) -> "CollaboratorGrant":
        """Преобразование модели БД в доменную сущность"""
        from kbase.domains.collaboration.entities import CollaboratorGrant

        return CollaboratorGrant(
            uuid=db_grant.uuid,
            document_id=db_grant.document_id,
            user_id=db_grant.user_id,
            permission=db_grant.permission.value,
            added_by=db_grant.added_by,
            created_at=db_grant.created_at,
            username=username,
            email=email
        )


class NotificationRepository:
    """Репозиторий уведомлений (только вставка и чтение)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @guard_backend
    async def create(self, notification: "Notification") -> "Notification":
        """Создание уведомления"""
        db_notification = NotificationModel(
            uuid=notification.uuid,
            user_id=notification.user_id,
            document_id=notification.document_id,
            type=NotificationType(notification.type),
            message=notification.message
        )

        self.session.add(db_notification)
        await self.session.commit()
        await self.session.refresh(db_notification)
        return self._to_domain(db_notification)

    @guard_backend
    async def get_by_user(self, user_id: uuid.UUID, limit: int = 50) -> List["Notification"]:
        """Уведомления пользователя, новые первыми"""
        result = await self.session.execute(
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_domain(n) for n in result.scalars().all()]

    def _to_domain(self, db_notification: NotificationModel) -> "Notification":
        """Преобразование модели БД в доменную сущность"""
        from kbase.domains.collaboration.entities import Notification

        return Notification(
            uuid=db_notification.uuid,
            user_id=db_notification.user_id,
            document_id=db_notification.document_id,
            type=db_notification.type.value,
            message=db_notification.message,
            created_at=db_notification.created_at
        )
