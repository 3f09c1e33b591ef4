from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Literal
import uuid
from datetime import datetime


class DocumentBase(BaseModel):
    """Базовая схема документа"""
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(default="", max_length=1000000)  # 1MB max content

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class DocumentCreate(DocumentBase):
    """Схема для создания документа"""
    is_public: bool = False


class DocumentUpdate(BaseModel):
    """Схема для явного сохранения документа"""
    content: str = Field(..., max_length=1000000)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    is_public: Optional[bool] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v


class DocumentResponse(DocumentBase):
    """Схема для ответа с данными документа"""
    uuid: uuid.UUID
    author_id: uuid.UUID
    is_public: bool
    current_version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentViewResponse(BaseModel):
    """Документ вместе с правами текущего пользователя"""
    document: DocumentResponse
    permission: Literal["view", "edit"]
    can_edit: bool
    is_author: bool
    has_collaborators: bool


class DocumentSummaryResponse(BaseModel):
    """Элемент списка доступных документов"""
    uuid: uuid.UUID
    title: str
    excerpt: str
    author_id: uuid.UUID
    author_name: str
    is_public: bool
    latest_version: int
    has_collaborators: bool
    permission: Literal["view", "edit"]
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    """Схема для списка документов"""
    state: Literal["idle", "loading", "ready", "error"]
    documents: List[DocumentSummaryResponse]
    total: int
    error: Optional[str] = None


class DocumentSearchResponse(DocumentListResponse):
    """Схема для ответа с результатами поиска"""
    query: str


class DocumentVersionResponse(BaseModel):
    """Схема для ответа с данными версии документа"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    version: int
    content: str
    author_id: uuid.UUID
    changes: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentVersionListResponse(BaseModel):
    """Схема для истории версий"""
    document_id: uuid.UUID
    versions: List[DocumentVersionResponse]
    total: int


class EditResponse(BaseModel):
    """Результат сохранения правки"""
    document: DocumentResponse
    version_created: bool
    version: Optional[DocumentVersionResponse] = None


class EditingSessionResponse(BaseModel):
    """Открытая сессия редактирования"""
    uuid: uuid.UUID
    document_id: uuid.UUID
    user_id: uuid.UUID
    last_capture_at: Optional[datetime] = None
    opened_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AutosaveRequest(DocumentUpdate):
    """Тик автосохранения из сессии редактирования"""
    pass
