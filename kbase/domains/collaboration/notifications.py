from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from kbase.core.errors import AuthenticationRequired, KBaseError
from kbase.db.repositories.collaboration_repository import NotificationRepository
from kbase.domains.collaboration.entities import Notification
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)


class NotificationService:
    """Уведомления: создаются как побочный эффект и не блокируют операцию"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.notification_repository = NotificationRepository(session)

    async def notify(
        self,
        user_id: uuid.UUID,
        document_id: uuid.UUID,
        type: str,
        message: str
    ) -> Optional[Notification]:
        """Создание уведомления; ошибка записи только логируется"""
        notification = Notification.create_notification(
            user_id=user_id,
            document_id=document_id,
            type=type,
            message=message
        )
        try:
            return await self.notification_repository.create(notification)
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Notification for user {user_id} on document {document_id} was rejected: {e}")
            return None
        except KBaseError as e:
            logger.warning(f"Notification for user {user_id} on document {document_id} was not stored: {e}")
            return None

    async def list_for_user(self, current_user: Optional[User], limit: int = 50) -> List[Notification]:
        """Уведомления текущего пользователя"""
        if current_user is None:
            raise AuthenticationRequired()
        return await self.notification_repository.get_by_user(current_user.uuid, limit)
