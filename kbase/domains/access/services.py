from typing import Optional, Iterable, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from kbase.core.errors import (
    AccessDenied, AuthenticationRequired, BackendUnavailable, NotFound,
    UserNotFound, ValidationFailed
)
from kbase.db.repositories.collaboration_repository import CollaboratorRepository
from kbase.db.repositories.document_repository import DocumentRepository
from kbase.db.repositories.user_repository import UserRepository
from kbase.domains.access.entities import Permission, resolve_permission
from kbase.domains.collaboration.entities import CollaboratorGrant, Notification
from kbase.domains.collaboration.notifications import NotificationService
from kbase.domains.documents.entities import Document
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)


class AccessControlService:
    """Вычисление эффективного доступа и управление доступами соавторов"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.collaborator_repository = CollaboratorRepository(session)
        self.user_repository = UserRepository(session)
        self.notification_service = NotificationService(session)

    async def get_document(self, document_id: uuid.UUID) -> Document:
        """Получение документа или NotFound"""
        document = await self.document_repository.get_by_uuid(document_id)
        if document is None:
            raise NotFound("Document not found")
        return document

    async def effective_permission(self, document: Document, user: Optional[User]) -> Permission:
        """Эффективный доступ пользователя к документу

        Ошибка при поиске записи соавтора не дает доступа сверх того,
        что следует из автора и публичности.
        """
        if user is None or document.is_author(user.uuid):
            return resolve_permission(document, user)

        try:
            grant = await self.collaborator_repository.get_by_document_and_user(document.uuid, user.uuid)
        except BackendUnavailable:
            logger.warning(
                f"Grant lookup failed for document {document.uuid} and user {user.uuid}, denying"
            )
            grant = None

        return resolve_permission(document, user, grant)

    async def viewable_document_ids(self, document_ids: Iterable[uuid.UUID], user: Optional[User]) -> Set[uuid.UUID]:
        """Какие из документов пользователь может просматривать

        Два запроса на весь набор: документы и доступы пользователя к ним.
        Несуществующие документы в результат не попадают.
        """
        ids = set(document_ids)
        if not ids:
            return set()

        documents = await self.document_repository.list_by_uuids(ids)
        grants = {}
        if user is not None:
            try:
                grants = {
                    grant.document_id: grant
                    for grant in await self.collaborator_repository.get_by_user(user.uuid, document_ids=ids)
                }
            except BackendUnavailable:
                logger.warning(f"Grant lookup failed for user {user.uuid}, using author and public access only")

        return {
            document.uuid for document in documents
            if resolve_permission(document, user, grants.get(document.uuid)).allows(Permission.VIEW)
        }

    async def require(self, document: Document, user: Optional[User], required: Permission) -> Permission:
        """Проверка, что доступ не ниже required"""
        permission = await self.effective_permission(document, user)
        if permission.allows(required):
            return permission
        # Просмотр закрытого документа анонимом - тот же отказ, что и всем
        if user is None and required is Permission.EDIT:
            raise AuthenticationRequired()
        raise AccessDenied()

    async def require_view(self, document: Document, user: Optional[User]) -> Permission:
        return await self.require(document, user, Permission.VIEW)

    async def require_edit(self, document: Document, user: Optional[User]) -> Permission:
        return await self.require(document, user, Permission.EDIT)

    async def share_document(
        self,
        document_id: uuid.UUID,
        grantee_email: str,
        permission: str,
        current_user: Optional[User]
    ) -> CollaboratorGrant:
        """Предоставление или изменение доступа по email

        На пару (документ, пользователь) существует не больше одной
        записи: повторный вызов меняет уровень доступа.
        """
        if current_user is None:
            raise AuthenticationRequired()

        permission = Permission(permission)
        if permission is Permission.NONE:
            raise ValidationFailed("Permission must be 'view' or 'edit'")

        document = await self.get_document(document_id)
        await self.require_edit(document, current_user)

        grantee = await self.user_repository.get_by_email(grantee_email)
        if grantee is None:
            raise UserNotFound()

        if document.is_author(grantee.uuid):
            raise ValidationFailed("The author already has full access to this document")

        grant = await self._upsert_grant(document, grantee, permission, current_user)

        await self.notification_service.notify(
            user_id=grantee.uuid,
            document_id=document.uuid,
            type=Notification.SHARE,
            message=f'{current_user.display_name} shared "{document.title}" with you ({permission.value})'
        )
        return grant

    async def _upsert_grant(
        self,
        document: Document,
        grantee: User,
        permission: Permission,
        current_user: User
    ) -> CollaboratorGrant:
        existing = await self.collaborator_repository.get_by_document_and_user(document.uuid, grantee.uuid)

        if existing is None:
            try:
                grant = await self.collaborator_repository.create(
                    CollaboratorGrant.create_grant(
                        document_id=document.uuid,
                        user_id=grantee.uuid,
                        permission=permission.value,
                        added_by=current_user.uuid
                    )
                )
                logger.info(f"Granted {permission.value} on document {document.uuid} to user {grantee.uuid}")
                return grant
            except IntegrityError:
                # Запись появилась между проверкой и вставкой
                existing = await self.collaborator_repository.get_by_document_and_user(document.uuid, grantee.uuid)
                if existing is None:
                    raise

        grant = await self.collaborator_repository.update_permission(existing.uuid, permission.value)
        logger.info(f"Changed permission on document {document.uuid} for user {grantee.uuid} to {permission.value}")
        return grant

    async def update_grant(
        self,
        document_id: uuid.UUID,
        grant_id: uuid.UUID,
        permission: str,
        current_user: Optional[User]
    ) -> CollaboratorGrant:
        """Изменение уровня доступа существующей записи"""
        permission = Permission(permission)
        if permission is Permission.NONE:
            raise ValidationFailed("Permission must be 'view' or 'edit'")

        document = await self.get_document(document_id)
        await self.require_edit(document, current_user)

        grant = await self._get_grant(document, grant_id)
        updated = await self.collaborator_repository.update_permission(grant.uuid, permission.value)
        logger.info(f"Changed permission on document {document.uuid} for user {grant.user_id} to {permission.value}")
        return updated

    async def revoke_access(
        self,
        document_id: uuid.UUID,
        grant_id: uuid.UUID,
        current_user: Optional[User]
    ) -> None:
        """Удаление записи соавтора; доступ автора не затрагивается"""
        document = await self.get_document(document_id)
        await self.require_edit(document, current_user)

        grant = await self._get_grant(document, grant_id)
        await self.collaborator_repository.delete(grant.uuid)
        logger.info(f"Revoked access on document {document.uuid} for user {grant.user_id}")

    async def _get_grant(self, document: Document, grant_id: uuid.UUID) -> CollaboratorGrant:
        grant = await self.collaborator_repository.get_by_uuid(grant_id)
        if grant is None or grant.document_id != document.uuid:
            raise NotFound("Collaborator not found")
        return grant
