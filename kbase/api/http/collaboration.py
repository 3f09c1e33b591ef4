from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from kbase.core.auth import get_current_user, get_optional_user
from kbase.core.db import get_db
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.entities import CollaboratorGrant
from kbase.domains.collaboration.notifications import NotificationService
from kbase.domains.collaboration.schemas import (
    ShareRequest, PermissionUpdate, CollaboratorResponse, CollaboratorListResponse,
    CollaboratorFlagsRequest, CollaboratorFlagsResponse, NotificationResponse
)
from kbase.domains.collaboration.services import CollaboratorService
from kbase.domains.identity.entities import User

router = APIRouter(tags=["collaboration"])


def _grant_response(grant: CollaboratorGrant) -> CollaboratorResponse:
    return CollaboratorResponse(
        uuid=grant.uuid,
        document_id=grant.document_id,
        user_id=grant.user_id,
        permission=grant.permission,
        added_by=grant.added_by,
        username=grant.username,
        email=grant.email,
        display_name=grant.display_name,
        created_at=grant.created_at
    )


@router.get("/documents/{document_uuid}/collaborators", response_model=CollaboratorListResponse)
async def list_collaborators(
    document_uuid: uuid.UUID,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Соавторы документа"""
    grants = await CollaboratorService(db).list_collaborators(document_uuid, current_user)
    return CollaboratorListResponse(
        document_id=document_uuid,
        collaborators=[_grant_response(g) for g in grants],
        total=len(grants)
    )


@router.post(
    "/documents/{document_uuid}/collaborators",
    response_model=CollaboratorResponse,
    status_code=status.HTTP_201_CREATED
)
async def share_document(
    document_uuid: uuid.UUID,
    share_data: ShareRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Предоставление доступа по email (повторный вызов меняет уровень)"""
    grant = await AccessControlService(db).share_document(
        document_uuid, share_data.email, share_data.permission, current_user
    )
    return _grant_response(grant)


@router.patch("/documents/{document_uuid}/collaborators/{grant_uuid}", response_model=CollaboratorResponse)
async def update_collaborator(
    document_uuid: uuid.UUID,
    grant_uuid: uuid.UUID,
    update_data: PermissionUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Изменение уровня доступа соавтора"""
    grant = await AccessControlService(db).update_grant(
        document_uuid, grant_uuid, update_data.permission, current_user
    )
    return _grant_response(grant)


@router.delete("/documents/{document_uuid}/collaborators/{grant_uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_collaborator(
    document_uuid: uuid.UUID,
    grant_uuid: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Удаление соавтора"""
    await AccessControlService(db).revoke_access(document_uuid, grant_uuid, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/collaborators/flags", response_model=CollaboratorFlagsResponse)
async def collaborator_flags(
    request: CollaboratorFlagsRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Флаги наличия соавторов; недоступные документы получают False"""
    flags = await CollaboratorService(db).visible_collaborator_flags(request.document_ids, current_user)
    return CollaboratorFlagsResponse(flags=flags)


@router.get("/notifications/", response_model=list[NotificationResponse])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Уведомления текущего пользователя, новые первыми"""
    notifications = await NotificationService(db).list_for_user(current_user, limit)
    return [NotificationResponse.model_validate(n) for n in notifications]
