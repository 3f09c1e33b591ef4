"""
Ошибки домена

Типизированные исключения, которые поднимают сервисы. HTTP-слой
переводит их в ответы через обработчики в kbase.main.
"""
from typing import Optional
import uuid


class KBaseError(Exception):
    """Базовая ошибка приложения"""

    code = "internal_error"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class AuthenticationRequired(KBaseError):
    code = "authentication_required"
    status_code = 401
    default_message = "Sign in to continue"


class AccessDenied(KBaseError):
    code = "access_denied"
    status_code = 403
    default_message = "You don't have access to this document"


class NotFound(KBaseError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    default_message = "User not found"


class Conflict(KBaseError):
    """Коллизия номера версии; операцию можно повторить"""

    code = "conflict"
    status_code = 409
    default_message = "The document was changed concurrently, try again"
    retryable = True


class BackendUnavailable(KBaseError):
    code = "backend_unavailable"
    status_code = 503
    default_message = "Service is temporarily unavailable, try again"


class ValidationFailed(KBaseError):
    code = "validation_failed"
    status_code = 422
    default_message = "Invalid request"


class InvalidCredentials(KBaseError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Incorrect email or password"


class EmailAlreadyRegistered(KBaseError):
    code = "email_already_registered"
    status_code = 400
    default_message = "Email already registered"


class VersionHistoryIncomplete(KBaseError):
    """Документ создан, но первая версия не сохранилась"""

    code = "version_history_incomplete"
    status_code = 500
    default_message = "Document was created but its version history is incomplete"

    def __init__(self, document_id: uuid.UUID, message: Optional[str] = None):
        self.document_id = document_id
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["document_id"] = str(self.document_id)
        return data
