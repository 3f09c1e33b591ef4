from kbase.db.models.user import User
from kbase.db.models.document import Document, DocumentVersion
from kbase.db.models.collaboration import (
    DocumentCollaborator, Notification, PermissionLevel, NotificationType
)

__all__ = [
    "User",
    "Document",
    "DocumentVersion",
    "DocumentCollaborator",
    "Notification",
    "PermissionLevel",
    "NotificationType"
]
