from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from kbase import __version__
from kbase.api.http import health_router, auth_router, documents_router, collaboration_router
from kbase.api.ws.sync import router as websocket_router
from kbase.core.config import settings
from kbase.core.db import create_tables
from kbase.core.errors import AuthenticationRequired, KBaseError
from kbase.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("kbase started")
    yield


async def kbase_error_handler(request: Request, exc: KBaseError) -> JSONResponse:
    """Перевод ошибок домена в JSON-ответ"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationRequired) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(
        title="kbase",
        description="База знаний с совместным доступом к документам и историей версий",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(KBaseError, kbase_error_handler)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(documents_router)
    app.include_router(collaboration_router)
    app.include_router(websocket_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": "kbase API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()
