from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional
import json
import logging
import uuid

from kbase.core.db import get_db
from kbase.core.errors import KBaseError, ValidationFailed
from kbase.domains.documents.autosave import AutoSaver, Draft
from kbase.domains.documents.schemas import AutosaveRequest
from kbase.domains.documents.versioning import EditResult, VersionManager, editing_sessions
from kbase.domains.identity.services import IdentityService

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    def __init__(self):
        # Активные соединения: {document_id: {session_id: websocket}}
        self.active_connections: Dict[uuid.UUID, Dict[uuid.UUID, WebSocket]] = {}

    def connect(self, websocket: WebSocket, document_id: uuid.UUID, session_id: uuid.UUID):
        """Регистрация соединения сессии редактирования"""
        self.active_connections.setdefault(document_id, {})[session_id] = websocket
        logger.info(f"Editing session {session_id} connected to document {document_id}")

    def disconnect(self, document_id: uuid.UUID, session_id: uuid.UUID):
        """Отключение сессии от документа"""
        connections = self.active_connections.get(document_id)
        if connections is not None:
            connections.pop(session_id, None)
            if not connections:
                del self.active_connections[document_id]

        logger.info(f"Editing session {session_id} disconnected from document {document_id}")

    def session_count(self, document_id: uuid.UUID) -> int:
        return len(self.active_connections.get(document_id, {}))

    async def broadcast_to_document(
        self,
        document_id: uuid.UUID,
        message: dict,
        exclude_session: Optional[uuid.UUID] = None
    ):
        """Рассылка сообщения остальным сессиям документа"""
        disconnected = []

        for session_id, websocket in list(self.active_connections.get(document_id, {}).items()):
            if session_id == exclude_session:
                continue
            if not await send_if_open(websocket, message):
                disconnected.append(session_id)

        for session_id in disconnected:
            self.disconnect(document_id, session_id)


manager = ConnectionManager()


async def send_if_open(websocket: WebSocket, message: dict) -> bool:
    """Отправка сообщения; закрытое клиентом соединение не считается ошибкой"""
    try:
        await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError):
        logger.debug(f"Dropped {message.get('type')} message for a closed connection")
        return False
    return True


def parse_client_message(raw: str) -> dict:
    """Разбор входящего кадра; не-JSON и не-объект отклоняются"""
    try:
        message = json.loads(raw)
    except ValueError:
        raise ValidationFailed("Message is not valid JSON")
    if not isinstance(message, dict):
        raise ValidationFailed("Message must be a JSON object")
    return message


def draft_from_message(message: dict) -> Draft:
    """Правка проходит те же проверки, что и автосохранение через HTTP"""
    try:
        request = AutosaveRequest.model_validate(message)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ValidationFailed(errors)
    return Draft(content=request.content, title=request.title, is_public=request.is_public)


def _saved_message(result: EditResult) -> dict:
    return {
        "type": "saved",
        "version_created": result.version_created,
        "current_version": result.document.current_version,
        "updated_at": result.document.updated_at.isoformat()
    }


@router.websocket("/ws/documents/{document_id}")
async def editing_session_endpoint(
    websocket: WebSocket,
    document_id: uuid.UUID,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """Сессия редактирования: правки уходят в автосохранение с дебаунсом"""
    await websocket.accept()

    user = await IdentityService(db).get_current_user_from_token(token) if token else None
    version_manager = VersionManager(db)

    try:
        session = await version_manager.open_session(document_id, user)
    except KBaseError as e:
        logger.info(f"Editing session for document {document_id} rejected: {e.code}")
        await websocket.send_json({"type": "error", **e.to_dict()})
        await websocket.close(code=4000 + e.status_code)
        return

    async def save(draft: Draft) -> EditResult:
        return await version_manager.record_edit(
            document_id,
            user,
            content=draft.content,
            title=draft.title,
            is_public=draft.is_public,
            session=session
        )

    async def on_saved(result: EditResult):
        await send_if_open(websocket, _saved_message(result))
        await manager.broadcast_to_document(document_id, {
            "type": "document_updated",
            "user_id": str(user.uuid),
            "current_version": result.document.current_version
        }, exclude_session=session.uuid)

    async def on_error(error: Exception):
        if isinstance(error, KBaseError):
            payload = error.to_dict()
        else:
            payload = KBaseError().to_dict()
        await send_if_open(websocket, {"type": "error", **payload})

    autosaver = AutoSaver(save, on_saved=on_saved, on_error=on_error)
    manager.connect(websocket, document_id, session.uuid)

    await websocket.send_json({
        "type": "connected",
        "session_id": str(session.uuid),
        "document_id": str(document_id),
        "active_sessions": manager.session_count(document_id)
    })

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = parse_client_message(raw)
                message_type = message.get("type")
                draft = draft_from_message(message) if message_type == "edit" else None
            except ValidationFailed as e:
                await websocket.send_json({"type": "error", **e.to_dict()})
                continue

            if message_type == "edit":
                autosaver.schedule(draft)

            elif message_type == "save":
                await autosaver.flush()

            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({
                    "type": "error",
                    "error": "validation_failed",
                    "detail": f"Unknown message type: {message_type}"
                })

    except WebSocketDisconnect:
        pass
    finally:
        # Уход со страницы: отложенная правка не сохраняется
        autosaver.discard()
        await autosaver.wait_idle()
        editing_sessions.close(session.uuid)
        manager.disconnect(document_id, session.uuid)
