"""
Слой агрегации документов

Объединяет публичные, собственные и расшаренные документы в один
список без дублей и дополняет каждую запись номером последней версии,
именем автора и флагом наличия соавторов. Ошибки хранилища не
выбрасываются: список переходит в состояние error с пустыми данными.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Sequence, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import re
import uuid

from kbase.core.errors import KBaseError
from kbase.db.base import as_utc
from kbase.db.repositories.collaboration_repository import CollaboratorRepository
from kbase.db.repositories.document_repository import DocumentRepository, DocumentVersionRepository
from kbase.db.repositories.user_repository import UserRepository
from kbase.domains.access.entities import Permission, resolve_permission
from kbase.domains.collaboration.services import CollaboratorService
from kbase.domains.documents.entities import Document
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r"<[^>]*>")


def strip_markup(content: str) -> str:
    """Текст без HTML-тегов"""
    return TAG_RE.sub("", content or "")


def excerpt(content: str, length: int = 100) -> str:
    """Превью содержимого для списков"""
    text = strip_markup(content).strip()
    if len(text) <= length:
        return text
    return text[:length] + "..."


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class DocumentSummary:
    """Документ в составе списка доступных"""
    document: Document
    permission: Permission
    latest_version: int
    author_name: str = ""
    has_collaborators: bool = False

    @property
    def uuid(self) -> uuid.UUID:
        return self.document.uuid

    @property
    def title(self) -> str:
        return self.document.title

    @property
    def content(self) -> str:
        return self.document.content


@dataclass
class DocumentListing:
    """Состояние загрузки списка документов"""
    state: LoadState = LoadState.IDLE
    documents: List[DocumentSummary] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.state is LoadState.ERROR


T = TypeVar("T")


def search_documents(documents: Sequence[T], query: str) -> List[T]:
    """Фильтр уже загруженного списка по подстроке в заголовке или тексте

    Пустой запрос возвращает список без изменений. Порядок сохраняется.
    """
    if not query or not query.strip():
        return list(documents)

    needle = query.strip().lower()
    return [
        doc for doc in documents
        if needle in doc.title.lower() or needle in strip_markup(doc.content).lower()
    ]


def merge_document_sets(
    authored: Sequence[Document],
    shared: Sequence[Document],
    public: Sequence[Document]
) -> Dict[uuid.UUID, Document]:
    """Слияние наборов по UUID

    Для дублей остается копия из первого набора в порядке: свои,
    расшаренные, публичные.
    """
    merged: Dict[uuid.UUID, Document] = {}
    for documents in (authored, shared, public):
        for document in documents:
            merged.setdefault(document.uuid, document)
    return merged


class DocumentLibrary:
    """Список и поиск документов, доступных пользователю"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.document_repository = DocumentRepository(session)
        self.version_repository = DocumentVersionRepository(session)
        self.collaborator_repository = CollaboratorRepository(session)
        self.user_repository = UserRepository(session)
        self.collaborator_service = CollaboratorService(session)

    async def list_accessible_documents(self, current_user: Optional[User]) -> DocumentListing:
        """Публичные + свои + расшаренные документы, новые первыми"""
        listing = DocumentListing(state=LoadState.LOADING)
        try:
            listing.documents = await self._load(current_user)
        except KBaseError as e:
            logger.error(f"Failed to load documents for user {current_user.uuid if current_user else 'anonymous'}: {e}")
            listing.state = LoadState.ERROR
            listing.documents = []
            listing.error = e.message
            return listing

        listing.state = LoadState.READY
        return listing

    async def search(self, current_user: Optional[User], query: str) -> DocumentListing:
        """Поиск по доступным документам"""
        listing = await self.list_accessible_documents(current_user)
        if not listing.failed:
            listing.documents = search_documents(listing.documents, query)
        return listing

    async def _load(self, current_user: Optional[User]) -> List[DocumentSummary]:
        public = await self.document_repository.list_public()

        if current_user is None:
            authored, shared, grants = [], [], {}
        else:
            authored = await self.document_repository.list_by_author(current_user.uuid)
            grants = {
                grant.document_id: grant
                for grant in await self.collaborator_repository.get_by_user(current_user.uuid)
            }
            shared = await self.document_repository.list_by_uuids(grants)

        merged = merge_document_sets(authored, shared, public)
        if not merged:
            return []

        ids = list(merged)
        latest_versions = await self.version_repository.get_latest_numbers(ids)
        authors = await self.user_repository.get_many(doc.author_id for doc in merged.values())
        flags = await self.collaborator_service.has_any_collaborators(ids)

        summaries = []
        for document in merged.values():
            author = authors.get(document.author_id)
            summaries.append(DocumentSummary(
                document=document,
                permission=resolve_permission(document, current_user, grants.get(document.uuid)),
                latest_version=latest_versions.get(document.uuid, document.current_version),
                author_name=author.display_name if author else "",
                has_collaborators=flags.get(document.uuid, False)
            ))

        summaries.sort(key=lambda s: as_utc(s.document.updated_at), reverse=True)
        return summaries

