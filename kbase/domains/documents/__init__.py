from kbase.domains.documents.entities import Document, DocumentVersion, CHANGES_CREATED, CHANGES_UPDATED
from kbase.domains.documents.schemas import (
    DocumentBase, DocumentCreate, DocumentUpdate, AutosaveRequest, DocumentResponse,
    DocumentViewResponse, DocumentSummaryResponse, DocumentListResponse, DocumentSearchResponse,
    DocumentVersionResponse, DocumentVersionListResponse, EditResponse, EditingSessionResponse
)

__all__ = [
    "Document", "DocumentVersion", "CHANGES_CREATED", "CHANGES_UPDATED",
    "DocumentBase", "DocumentCreate", "DocumentUpdate", "AutosaveRequest", "DocumentResponse",
    "DocumentViewResponse", "DocumentSummaryResponse", "DocumentListResponse", "DocumentSearchResponse",
    "DocumentVersionResponse", "DocumentVersionListResponse", "EditResponse", "EditingSessionResponse"
]
