from kbase.api.http.health import router as health_router
from kbase.api.http.auth import router as auth_router
from kbase.api.http.documents import router as documents_router
from kbase.api.http.collaboration import router as collaboration_router

__all__ = [
    "health_router",
    "auth_router",
    "documents_router",
    "collaboration_router"
]
