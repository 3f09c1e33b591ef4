from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship

from kbase.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar_url = Column(String(512), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    authored_documents = relationship("Document", back_populates="author", cascade="all, delete-orphan")
