from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import uuid

from kbase.core.errors import (
    AuthenticationRequired, EmailAlreadyRegistered, InvalidCredentials, ValidationFailed
)
from kbase.core.security import create_access_token, verify_token
from kbase.db.repositories.user_repository import UserRepository
from kbase.domains.identity.entities import User
from kbase.domains.identity.schemas import UserCreate, UserLogin, PasswordChange

logger = logging.getLogger(__name__)


class IdentityService:
    """Сервис для работы с идентификацией и аутентификацией пользователей"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repository = UserRepository(session)

    async def register_user(self, user_data: UserCreate) -> User:
        """Регистрация нового пользователя"""
        if await self.user_repository.email_exists(user_data.email):
            raise EmailAlreadyRegistered()

        if await self.user_repository.username_exists(user_data.username):
            raise ValidationFailed("Username already taken")

        user = User.create_user(
            email=user_data.email,
            username=user_data.username,
            password=user_data.password
        )

        created = await self.user_repository.create(user)
        logger.info(f"Registered user {created.uuid}")
        return created

    async def authenticate_user(self, login_data: UserLogin) -> User:
        """Аутентификация пользователя"""
        user = await self.user_repository.get_by_email(login_data.email)

        if not user or not user.is_active or not user.authenticate(login_data.password):
            raise InvalidCredentials()

        return user

    def issue_token(self, user: User) -> str:
        """JWT токен для пользователя"""
        token_data = {
            "sub": str(user.uuid),
            "username": user.username,
            "email": user.email
        }
        return create_access_token(data=token_data)

    async def login_user(self, login_data: UserLogin) -> str:
        """Вход пользователя и создание JWT токена"""
        user = await self.authenticate_user(login_data)
        return self.issue_token(user)

    async def change_user_password(self, current_user: Optional[User], password_data: PasswordChange) -> None:
        """Смена пароля пользователя"""
        if current_user is None:
            raise AuthenticationRequired()

        if not current_user.authenticate(password_data.current_password):
            raise InvalidCredentials("Current password is incorrect")

        current_user.set_password(password_data.new_password)
        await self.user_repository.update_password(current_user)
        logger.info(f"User {current_user.uuid} changed password")

    async def get_current_user_from_token(self, token: str) -> Optional[User]:
        """Получение текущего пользователя из JWT токена"""
        payload = verify_token(token)
        if payload is None:
            return None

        try:
            user_uuid = uuid.UUID(payload.get("sub"))
        except (TypeError, ValueError):
            return None

        user = await self.user_repository.get_by_uuid(user_uuid)
        if user is None or not user.is_active:
            return None

        return user
