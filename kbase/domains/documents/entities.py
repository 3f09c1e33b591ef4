import uuid
from datetime import datetime
from typing import Optional

from kbase.db.base import utcnow

CHANGES_CREATED = "Document created"
CHANGES_UPDATED = "Content updated"


class Document:
    """Сущность документа домена Documents"""

    def __init__(
        self,
        uuid: uuid.UUID,
        title: str,
        author_id: uuid.UUID,
        content: str = "",
        is_public: bool = False,
        current_version: int = 1,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.title = title
        self.content = content
        self.author_id = author_id
        self.is_public = is_public
        self.current_version = current_version
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def is_author(self, user_id: Optional[uuid.UUID]) -> bool:
        return user_id is not None and user_id == self.author_id

    def apply_edit(
        self,
        content: str,
        title: Optional[str] = None,
        is_public: Optional[bool] = None,
        at: Optional[datetime] = None
    ) -> None:
        """Применение правки без создания версии"""
        self.content = content
        if title is not None:
            self.title = title
        if is_public is not None:
            self.is_public = is_public
        self.updated_at = at or utcnow()

    @classmethod
    def create_document(
        cls,
        title: str,
        author_id: uuid.UUID,
        content: str = "",
        is_public: bool = False
    ) -> "Document":
        """Создание нового документа"""
        return cls(
            uuid=uuid.uuid4(),
            title=title,
            content=content,
            author_id=author_id,
            is_public=is_public,
            current_version=1
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Document):
            return False
        return self.uuid == other.uuid

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __repr__(self) -> str:
        return f"Document(uuid={self.uuid}, title={self.title}, version={self.current_version})"


class DocumentVersion:
    """Неизменяемый снимок содержимого документа"""

    def __init__(
        self,
        uuid: uuid.UUID,
        document_id: uuid.UUID,
        version: int,
        content: str,
        author_id: uuid.UUID,
        changes: str = "",
        created_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.document_id = document_id
        self.version = version
        self.content = content
        self.author_id = author_id
        self.changes = changes
        self.created_at = created_at or utcnow()

    @classmethod
    def create_version(
        cls,
        document_id: uuid.UUID,
        content: str,
        version: int,
        author_id: uuid.UUID,
        changes: str = CHANGES_UPDATED,
        created_at: Optional[datetime] = None
    ) -> "DocumentVersion":
        """Создание новой версии документа"""
        return cls(
            uuid=uuid.uuid4(),
            document_id=document_id,
            version=version,
            content=content,
            author_id=author_id,
            changes=changes,
            created_at=created_at
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocumentVersion):
            return False
        return self.uuid == other.uuid

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __repr__(self) -> str:
        return f"DocumentVersion(uuid={self.uuid}, document_id={self.document_id}, version={self.version})"
