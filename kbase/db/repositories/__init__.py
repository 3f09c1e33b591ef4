from kbase.db.repositories.user_repository import UserRepository
from kbase.db.repositories.document_repository import DocumentRepository, DocumentVersionRepository
from kbase.db.repositories.collaboration_repository import (
    CollaboratorRepository, NotificationRepository
)

__all__ = [
    "UserRepository",
    "DocumentRepository",
    "DocumentVersionRepository",
    "CollaboratorRepository",
    "NotificationRepository"
]
