from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, List, Dict, Literal
import uuid
from datetime import datetime


class ShareRequest(BaseModel):
    """Схема для предоставления доступа к документу"""
    email: EmailStr
    permission: Literal["view", "edit"] = "view"


class PermissionUpdate(BaseModel):
    """Схема для изменения уровня доступа"""
    permission: Literal["view", "edit"]


class CollaboratorResponse(BaseModel):
    """Схема для ответа с данными соавтора"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    user_id: uuid.UUID
    permission: Literal["view", "edit"]
    added_by: Optional[uuid.UUID] = None
    username: Optional[str] = None
    email: Optional[str] = None
    display_name: str = ""
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CollaboratorListResponse(BaseModel):
    """Схема для списка соавторов"""
    document_id: uuid.UUID
    collaborators: List[CollaboratorResponse]
    total: int


class CollaboratorFlagsRequest(BaseModel):
    """Схема для пакетной проверки наличия соавторов"""
    document_ids: List[uuid.UUID] = Field(default_factory=list, max_length=500)


class CollaboratorFlagsResponse(BaseModel):
    """Схема для ответа с флагами наличия соавторов"""
    flags: Dict[uuid.UUID, bool]


class NotificationResponse(BaseModel):
    """Схема для ответа с уведомлением"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    type: Literal["share", "mention"]
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
