from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, Enum, Uuid
from sqlalchemy.orm import relationship
import enum

from kbase.db.base import BaseModel


class PermissionLevel(enum.Enum):
    VIEW = "view"
    EDIT = "edit"


class NotificationType(enum.Enum):
    SHARE = "share"
    MENTION = "mention"


class DocumentCollaborator(BaseModel):
    __tablename__ = "document_collaborators"
    __table_args__ = (
        UniqueConstraint("document_id", "user_id", name="uq_document_collaborators_document_user"),
    )

    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False, index=True)
    permission = Column(Enum(PermissionLevel, values_callable=lambda e: [m.value for m in e]), nullable=False)
    added_by = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=True)

    # Relationships
    document = relationship("Document", back_populates="collaborators")
    user = relationship("User", foreign_keys=[user_id])


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False, index=True)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(NotificationType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    message = Column(String(500), nullable=False)

    # Relationships
    document = relationship("Document", back_populates="notifications")
