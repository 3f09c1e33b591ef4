from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from kbase.domains.collaboration.entities import CollaboratorGrant
    from kbase.domains.documents.entities import Document
    from kbase.domains.identity.entities import User


class Permission(str, Enum):
    """Эффективный уровень доступа к документу"""
    NONE = "none"
    VIEW = "view"
    EDIT = "edit"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def allows(self, required: "Permission") -> bool:
        return self.rank >= required.rank


_RANKS = {Permission.NONE: 0, Permission.VIEW: 1, Permission.EDIT: 2}


def resolve_permission(
    document: "Document",
    user: Optional["User"],
    grant: Optional["CollaboratorGrant"] = None
) -> Permission:
    """Правило вычисления эффективного доступа

    Автор всегда получает edit, даже если у него есть запись соавтора
    с view. Публичный документ дает минимум view любому, включая
    анонимного посетителя. Иначе решает запись соавтора.
    """
    if user is not None and document.is_author(user.uuid):
        return Permission.EDIT

    floor = Permission.VIEW if document.is_public else Permission.NONE

    if user is None or grant is None or grant.user_id != user.uuid:
        return floor

    granted = Permission(grant.permission)
    return granted if granted.allows(floor) else floor
