from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from kbase import __version__
from kbase.core.db import get_db, ping

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Проверка доступности сервиса и базы данных"""
    try:
        await ping(db)
    except SQLAlchemyError as e:
        logger.error(f"Database ping failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unavailable", "version": __version__}
        )
    return {"status": "ok", "database": "ok", "version": __version__}
