from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from kbase.core.auth import get_current_user, get_optional_user
from kbase.core.db import get_db
from kbase.domains.documents.library import DocumentLibrary, DocumentListing, DocumentSummary, excerpt
from kbase.domains.documents.schemas import (
    DocumentCreate, DocumentUpdate, AutosaveRequest, DocumentResponse, DocumentViewResponse,
    DocumentSummaryResponse, DocumentListResponse, DocumentSearchResponse,
    DocumentVersionResponse, DocumentVersionListResponse, EditResponse, EditingSessionResponse
)
from kbase.domains.documents.services import DocumentService
from kbase.domains.documents.versioning import EditResult, VersionManager, editing_sessions
from kbase.domains.identity.entities import User

router = APIRouter(prefix="/documents", tags=["documents"])


def _summary_response(summary: DocumentSummary) -> DocumentSummaryResponse:
    document = summary.document
    return DocumentSummaryResponse(
        uuid=document.uuid,
        title=document.title,
        excerpt=excerpt(document.content),
        author_id=document.author_id,
        author_name=summary.author_name,
        is_public=document.is_public,
        latest_version=summary.latest_version,
        has_collaborators=summary.has_collaborators,
        permission=summary.permission.value,
        created_at=document.created_at,
        updated_at=document.updated_at
    )


def _listing_fields(listing: DocumentListing) -> dict:
    return {
        "state": listing.state.value,
        "documents": [_summary_response(s) for s in listing.documents],
        "total": len(listing.documents),
        "error": listing.error
    }


def _edit_response(result: EditResult) -> EditResponse:
    return EditResponse(
        document=DocumentResponse.model_validate(result.document),
        version_created=result.version_created,
        version=DocumentVersionResponse.model_validate(result.version) if result.version else None
    )


@router.get("/", response_model=DocumentListResponse)
async def list_documents(
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Публичные, собственные и расшаренные документы"""
    listing = await DocumentLibrary(db).list_accessible_documents(current_user)
    return DocumentListResponse(**_listing_fields(listing))


@router.get("/search", response_model=DocumentSearchResponse)
async def search_documents(
    q: str = Query("", max_length=200),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Поиск по заголовку и тексту доступных документов"""
    listing = await DocumentLibrary(db).search(current_user, q)
    return DocumentSearchResponse(query=q, **_listing_fields(listing))


@router.post("/", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Создание нового документа"""
    document = await DocumentService(db).create_document(document_data, current_user)
    return DocumentResponse.model_validate(document)


@router.get("/{document_uuid}", response_model=DocumentViewResponse)
async def get_document(
    document_uuid: uuid.UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Получение документа с правами текущего пользователя"""
    view = await DocumentService(db).get_document_view(document_uuid, current_user)
    return DocumentViewResponse(
        document=DocumentResponse.model_validate(view.document),
        permission=view.permission.value,
        can_edit=view.can_edit,
        is_author=view.is_author,
        has_collaborators=view.has_collaborators
    )


@router.put("/{document_uuid}", response_model=EditResponse)
async def update_document(
    document_uuid: uuid.UUID,
    update_data: DocumentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Явное сохранение документа"""
    result = await DocumentService(db).update_document(document_uuid, update_data, current_user)
    return _edit_response(result)


@router.delete("/{document_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_uuid: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Удаление документа"""
    await DocumentService(db).delete_document(document_uuid, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{document_uuid}/versions", response_model=DocumentVersionListResponse)
async def get_document_versions(
    document_uuid: uuid.UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """История версий документа"""
    versions = await VersionManager(db).get_versions(document_uuid, current_user)
    return DocumentVersionListResponse(
        document_id=document_uuid,
        versions=[DocumentVersionResponse.model_validate(v) for v in versions],
        total=len(versions)
    )


@router.get("/{document_uuid}/versions/{version_number}", response_model=DocumentVersionResponse)
async def get_document_version(
    document_uuid: uuid.UUID,
    version_number: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Конкретная версия документа"""
    version = await VersionManager(db).get_version(document_uuid, version_number, current_user)
    return DocumentVersionResponse.model_validate(version)


@router.post("/{document_uuid}/versions/{version_number}/restore", response_model=EditResponse)
async def restore_document_version(
    document_uuid: uuid.UUID,
    version_number: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Восстановление версии как новой версии"""
    result = await VersionManager(db).restore_version(document_uuid, version_number, current_user)
    return _edit_response(result)


@router.post(
    "/{document_uuid}/sessions",
    response_model=EditingSessionResponse,
    status_code=status.HTTP_201_CREATED
)
async def open_editing_session(
    document_uuid: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Открытие сессии редактирования"""
    session = await VersionManager(db).open_session(document_uuid, current_user)
    return EditingSessionResponse.model_validate(session)


@router.post("/{document_uuid}/sessions/{session_uuid}/autosave", response_model=EditResponse)
async def autosave(
    document_uuid: uuid.UUID,
    session_uuid: uuid.UUID,
    draft: AutosaveRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Тик автосохранения"""
    session = editing_sessions.get(session_uuid, document_uuid, current_user)
    result = await VersionManager(db).record_edit(
        document_uuid,
        current_user,
        content=draft.content,
        title=draft.title,
        is_public=draft.is_public,
        session=session
    )
    return _edit_response(result)


@router.delete("/{document_uuid}/sessions/{session_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def close_editing_session(
    document_uuid: uuid.UUID,
    session_uuid: uuid.UUID,
    current_user: User = Depends(get_current_user)
):
    """Закрытие сессии редактирования"""
    session = editing_sessions.get(session_uuid, document_uuid, current_user)
    editing_sessions.close(session.uuid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
