"""
Менеджер версий

Каждая правка содержимого сохраняется в документ, но новая версия
фиксируется не чаще одного раза за окно троттлинга (60 секунд по
умолчанию). Так история не разрастается при непрерывном автосохранении,
а документ всегда содержит последнее состояние.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Callable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from kbase.core.config import settings
from kbase.core.errors import AuthenticationRequired, Conflict, KBaseError, NotFound, ValidationFailed
from kbase.db.base import utcnow, as_utc
from kbase.db.repositories.document_repository import DocumentRepository, DocumentVersionRepository
from kbase.db.repositories.user_repository import UserRepository
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.entities import Notification, extract_mentions
from kbase.domains.collaboration.notifications import NotificationService
from kbase.domains.documents.entities import (
    Document, DocumentVersion, CHANGES_CREATED, CHANGES_UPDATED
)
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class EditingSession:
    """Сессия редактирования одного документа одним пользователем"""

    def __init__(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        last_capture_at: Optional[datetime] = None,
        opened_at: Optional[datetime] = None
    ):
        self.uuid = uuid.uuid4()
        self.document_id = document_id
        self.user_id = user_id
        # None означает, что версия еще ни разу не фиксировалась
        self.last_capture_at = as_utc(last_capture_at)
        self.opened_at = as_utc(opened_at) or utcnow()
        self.last_activity_at = self.opened_at

    def mark_captured(self, at: datetime) -> None:
        self.last_capture_at = as_utc(at)

    def touch(self, at: datetime) -> None:
        self.last_activity_at = max(self.last_activity_at, as_utc(at))

    def __repr__(self) -> str:
        return f"EditingSession(uuid={self.uuid}, document_id={self.document_id}, user_id={self.user_id})"


class EditingSessionRegistry:
    """Открытые сессии редактирования процесса

    Живет в памяти одного процесса. Сессия без активности дольше
    idle_timeout вытесняется при следующем обращении к реестру.
    """

    def __init__(self, idle_timeout: Optional[float] = None, clock: Optional[Clock] = None):
        self._sessions: Dict[uuid.UUID, EditingSession] = {}
        self.idle_timeout = timedelta(
            seconds=settings.editing_session_idle_seconds if idle_timeout is None else idle_timeout
        )
        self.clock = clock or utcnow

    def open(self, session: EditingSession) -> EditingSession:
        self.evict_idle()
        session.touch(self.clock())
        self._sessions[session.uuid] = session
        return session

    def get(self, session_id: uuid.UUID, document_id: uuid.UUID, user: Optional[User]) -> EditingSession:
        """Сессия, принадлежащая пользователю и документу, иначе NotFound"""
        self.evict_idle()
        session = self._sessions.get(session_id)
        if (
            session is None
            or user is None
            or session.user_id != user.uuid
            or session.document_id != document_id
        ):
            raise NotFound("Editing session not found")
        session.touch(self.clock())
        return session

    def close(self, session_id: uuid.UUID) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def evict_idle(self) -> int:
        """Удаление сессий, простаивающих дольше idle_timeout"""
        now = as_utc(self.clock())
        expired = [
            session_id for session_id, session in self._sessions.items()
            if now - session.last_activity_at >= self.idle_timeout
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} idle editing session(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


editing_sessions = EditingSessionRegistry()


@dataclass
class EditResult:
    """Результат сохранения правки"""
    document: Document
    version_created: bool
    version: Optional[DocumentVersion] = None


class VersionManager:
    """Решает, фиксировать ли правку как новую версию"""

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Clock] = None,
        throttle_seconds: Optional[float] = None,
        conflict_retries: Optional[int] = None
    ):
        self.session = session
        self.clock = clock or utcnow
        self.throttle_window = timedelta(
            seconds=settings.version_throttle_seconds if throttle_seconds is None else throttle_seconds
        )
        self.conflict_retries = conflict_retries or settings.version_conflict_retries
        self.document_repository = DocumentRepository(session)
        self.version_repository = DocumentVersionRepository(session)
        self.user_repository = UserRepository(session)
        self.access_service = AccessControlService(session)
        self.notification_service = NotificationService(session)

    async def create_initial_version(self, document: Document) -> DocumentVersion:
        """Версия 1 только что созданного документа"""
        version = DocumentVersion.create_version(
            document_id=document.uuid,
            content=document.content,
            version=1,
            author_id=document.author_id,
            changes=CHANGES_CREATED,
            created_at=document.created_at
        )
        return await self.version_repository.create(version)

    async def open_session(self, document_id: uuid.UUID, current_user: Optional[User]) -> EditingSession:
        """Открытие сессии редактирования

        Отсчет окна начинается с момента последней зафиксированной версии.
        """
        document = await self.access_service.get_document(document_id)
        await self.access_service.require_edit(document, current_user)

        latest = await self.version_repository.get_latest_version(document.uuid)
        session = EditingSession(
            document_id=document.uuid,
            user_id=current_user.uuid,
            last_capture_at=latest.created_at if latest else None,
            opened_at=self.clock()
        )
        logger.info(f"User {current_user.uuid} opened editing session {session.uuid} for document {document.uuid}")
        return editing_sessions.open(session)

    async def record_edit(
        self,
        document_id: uuid.UUID,
        editor: Optional[User],
        content: str,
        title: Optional[str] = None,
        is_public: Optional[bool] = None,
        session: Optional[EditingSession] = None,
        auto: bool = True
    ) -> EditResult:
        """Сохранение правки с фиксацией версии не чаще окна троттлинга

        Точка отсчета окна: более поздняя из последней фиксации сессии
        и последней версии документа, так что явное сохранение через
        API сдвигает окно и для открытых сессий.
        """
        if editor is None:
            raise AuthenticationRequired()

        document = await self.access_service.get_document(document_id)
        await self.access_service.require_edit(document, editor)

        if session is not None and (session.document_id != document.uuid or session.user_id != editor.uuid):
            raise ValidationFailed("Editing session does not belong to this document")

        now = self.clock()
        previous_content = document.content
        latest = await self.version_repository.get_latest_version(document.uuid)
        captures = [as_utc(latest.created_at)] if latest else []
        if session is not None:
            session.touch(now)
            if session.last_capture_at is not None:
                captures.append(session.last_capture_at)
        last_capture_at = max(captures) if captures else None

        if self._window_elapsed(last_capture_at, now):
            version = await self._append_version(document, editor, content, title, is_public, now, CHANGES_UPDATED)
            if session is not None:
                session.mark_captured(now)
        else:
            version = None
            document.apply_edit(content, title=title, is_public=is_public, at=now)
            await self.document_repository.update(document)
            logger.debug(
                f"{'Auto' if auto else 'Explicit'} save of document {document.uuid} within throttle window, no new version"
            )

        await self._notify_mentions(document, editor, previous_content, content)
        return EditResult(document=document, version_created=version is not None, version=version)

    async def restore_version(
        self,
        document_id: uuid.UUID,
        version_number: int,
        current_user: Optional[User]
    ) -> EditResult:
        """Восстановление содержимого из версии как новой версии"""
        if current_user is None:
            raise AuthenticationRequired()

        document = await self.access_service.get_document(document_id)
        await self.access_service.require_edit(document, current_user)

        source = await self.version_repository.get_version_by_number(document.uuid, version_number)
        if source is None:
            raise NotFound("Version not found")

        version = await self._append_version(
            document, current_user, source.content, None, None, self.clock(),
            f"Restored from version {version_number}"
        )
        return EditResult(document=document, version_created=True, version=version)

    async def get_versions(self, document_id: uuid.UUID, current_user: Optional[User]) -> List[DocumentVersion]:
        """Версии документа, новые первыми; пустой список допустим"""
        document = await self.access_service.get_document(document_id)
        await self.access_service.require_view(document, current_user)
        return await self.version_repository.get_by_document(document.uuid)

    async def get_version(
        self,
        document_id: uuid.UUID,
        version_number: int,
        current_user: Optional[User]
    ) -> DocumentVersion:
        """Конкретная версия документа"""
        document = await self.access_service.get_document(document_id)
        await self.access_service.require_view(document, current_user)

        version = await self.version_repository.get_version_by_number(document.uuid, version_number)
        if version is None:
            raise NotFound("Version not found")
        return version

    def _window_elapsed(self, last_capture_at: Optional[datetime], now: datetime) -> bool:
        if last_capture_at is None:
            return True
        return as_utc(now) - as_utc(last_capture_at) >= self.throttle_window

    async def _append_version(
        self,
        document: Document,
        editor: User,
        content: str,
        title: Optional[str],
        is_public: Optional[bool],
        now: datetime,
        changes: str
    ) -> DocumentVersion:
        """Обновление документа и новая версия в одной транзакции

        Номер версии = текущий максимум + 1. Если номер уже занят
        параллельной записью, транзакция откатывается и номер
        вычисляется заново.
        """
        for attempt in range(1, self.conflict_retries + 1):
            number = await self.version_repository.get_latest_number(document.uuid) + 1

            document.apply_edit(content, title=title, is_public=is_public, at=now)
            document.current_version = number
            version = DocumentVersion.create_version(
                document_id=document.uuid,
                content=content,
                version=number,
                author_id=editor.uuid,
                changes=changes,
                created_at=now
            )

            try:
                await self.document_repository.update(document, commit=False)
                created = await self.version_repository.create(version)
            except IntegrityError:
                logger.warning(
                    f"Version {number} of document {document.uuid} already exists "
                    f"(attempt {attempt}/{self.conflict_retries})"
                )
                continue

            logger.info(f"Captured version {number} of document {document.uuid} by user {editor.uuid}")
            return created

        raise Conflict()

    async def _notify_mentions(
        self,
        document: Document,
        editor: User,
        previous_content: str,
        content: str
    ) -> None:
        """Уведомления для новых @упоминаний"""
        mentioned = extract_mentions(content) - extract_mentions(previous_content)
        if not mentioned:
            return

        try:
            users = await self.user_repository.get_by_usernames(mentioned)
        except KBaseError as e:
            logger.warning(f"Mention lookup for document {document.uuid} failed: {e}")
            return

        for user in users:
            if user.uuid == editor.uuid:
                continue
            await self.notification_service.notify(
                user_id=user.uuid,
                document_id=document.uuid,
                type=Notification.MENTION,
                message=f'{editor.display_name} mentioned you in "{document.title}"'
            )
