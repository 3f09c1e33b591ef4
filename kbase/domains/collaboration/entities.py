import re
import uuid
from datetime import datetime
from typing import Optional, Set

from kbase.db.base import utcnow
from kbase.domains.identity.entities import display_name_for

# Совпадает с правилами валидации username
MENTION_RE = re.compile(r"(?<![\w@])@([A-Za-z0-9_-]{3,100})")


class CollaboratorGrant:
    """Доступ соавтора к документу (view или edit)"""

    def __init__(
        self,
        uuid: uuid.UUID,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        permission: str,
        added_by: Optional[uuid.UUID] = None,
        created_at: Optional[datetime] = None,
        username: Optional[str] = None,
        email: Optional[str] = None
    ):
        self.uuid = uuid
        self.document_id = document_id
        self.user_id = user_id
        self.permission = permission
        self.added_by = added_by
        self.created_at = created_at or utcnow()
        # Данные профиля заполняются только при выборке списка соавторов
        self.username = username
        self.email = email

    @property
    def display_name(self) -> str:
        return display_name_for(self.username, self.email)

    @classmethod
    def create_grant(
        cls,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        permission: str,
        added_by: uuid.UUID
    ) -> "CollaboratorGrant":
        return cls(
            uuid=uuid.uuid4(),
            document_id=document_id,
            user_id=user_id,
            permission=permission,
            added_by=added_by
        )

    def __repr__(self) -> str:
        return (
            f"CollaboratorGrant(document_id={self.document_id}, "
            f"user_id={self.user_id}, permission={self.permission})"
        )


class Notification:
    """Уведомление для пользователя"""

    SHARE = "share"
    MENTION = "mention"

    def __init__(
        self,
        uuid: uuid.UUID,
        user_id: uuid.UUID,
        document_id: uuid.UUID,
        type: str,
        message: str,
        created_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.user_id = user_id
        self.document_id = document_id
        self.type = type
        self.message = message
        self.created_at = created_at or utcnow()

    @classmethod
    def create_notification(
        cls,
        user_id: uuid.UUID,
        document_id: uuid.UUID,
        type: str,
        message: str
    ) -> "Notification":
        return cls(
            uuid=uuid.uuid4(),
            user_id=user_id,
            document_id=document_id,
            type=type,
            message=message
        )


def extract_mentions(content: str) -> Set[str]:
    """Имена пользователей, упомянутых через @username"""
    if not content:
        return set()
    return set(MENTION_RE.findall(content))
