from kbase.domains.collaboration.entities import CollaboratorGrant, Notification, extract_mentions
from kbase.domains.collaboration.schemas import (
    ShareRequest, PermissionUpdate, CollaboratorResponse, CollaboratorListResponse,
    CollaboratorFlagsRequest, CollaboratorFlagsResponse, NotificationResponse
)

__all__ = [
    "CollaboratorGrant", "Notification", "extract_mentions",
    "ShareRequest", "PermissionUpdate", "CollaboratorResponse", "CollaboratorListResponse",
    "CollaboratorFlagsRequest", "CollaboratorFlagsResponse", "NotificationResponse"
]
