from typing import Optional, List, Dict, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from kbase.core.errors import BackendUnavailable
from kbase.db.repositories.collaboration_repository import CollaboratorRepository
from kbase.domains.access.services import AccessControlService
from kbase.domains.collaboration.entities import CollaboratorGrant
from kbase.domains.identity.entities import User

logger = logging.getLogger(__name__)


class CollaboratorService:
    """Реестр соавторов документа"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.collaborator_repository = CollaboratorRepository(session)
        self.access_service = AccessControlService(session)

    async def list_collaborators(
        self,
        document_id: uuid.UUID,
        current_user: Optional[User]
    ) -> List[CollaboratorGrant]:
        """Соавторы документа с именем и email"""
        document = await self.access_service.get_document(document_id)
        await self.access_service.require_view(document, current_user)
        return await self.collaborator_repository.get_by_document(document.uuid)

    async def has_any_collaborator(self, document_id: uuid.UUID) -> bool:
        """Есть ли у документа хотя бы один соавтор"""
        flags = await self.has_any_collaborators([document_id])
        return flags.get(document_id, False)

    async def has_any_collaborators(self, document_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, bool]:
        """Флаг наличия соавторов для каждого документа, одним запросом"""
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return {}

        try:
            with_collaborators = await self.collaborator_repository.get_document_ids_with_collaborators(ids)
        except BackendUnavailable:
            logger.warning(f"Collaborator lookup failed for {len(ids)} documents, reporting none")
            with_collaborators = set()

        return {document_id: document_id in with_collaborators for document_id in ids}

    async def visible_collaborator_flags(
        self,
        document_ids: Iterable[uuid.UUID],
        current_user: Optional[User]
    ) -> Dict[uuid.UUID, bool]:
        """Флаги соавторов только для документов, доступных пользователю

        Недоступный или несуществующий документ получает False, чтобы
        ответ не выдавал существование закрытых документов.
        """
        ids = list(dict.fromkeys(document_ids))
        if not ids:
            return {}

        try:
            viewable = await self.access_service.viewable_document_ids(ids, current_user)
        except BackendUnavailable:
            logger.warning(f"Document lookup failed for {len(ids)} documents, reporting none")
            viewable = set()

        flags = await self.has_any_collaborators([document_id for document_id in ids if document_id in viewable])
        return {document_id: flags.get(document_id, False) for document_id in ids}
