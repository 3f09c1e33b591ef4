from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from kbase.core.db import get_db
from kbase.core.errors import AuthenticationRequired
from kbase.domains.identity.entities import User
from kbase.domains.identity.services import IdentityService

security = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Текущий пользователь или None для анонимного запроса"""
    if credentials is None:
        return None
    return await IdentityService(db).get_current_user_from_token(credentials.credentials)


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Текущий пользователь; без валидного токена 401"""
    if user is None:
        raise AuthenticationRequired("Could not validate credentials")
    return user
