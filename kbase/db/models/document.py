from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from kbase.db.base import BaseModel


class Document(BaseModel):
    __tablename__ = "documents"

    title = Column(String(255), nullable=False)
    content = Column(Text, default="", nullable=False)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False, index=True)
    is_public = Column(Boolean, default=False, nullable=False, index=True)
    current_version = Column(Integer, default=1, nullable=False)

    # Relationships
    author = relationship("User", back_populates="authored_documents")
    versions = relationship("DocumentVersion", back_populates="document", cascade="all, delete-orphan")
    collaborators = relationship("DocumentCollaborator", back_populates="document", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="document", cascade="all, delete-orphan")


class DocumentVersion(BaseModel):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version", name="uq_document_versions_document_version"),
    )

    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.uuid", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    content = Column(Text, nullable=False, default="")
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.uuid"), nullable=False)
    changes = Column(String(255), nullable=False, default="")

    # Relationships
    document = relationship("Document", back_populates="versions")
    author = relationship("User")
