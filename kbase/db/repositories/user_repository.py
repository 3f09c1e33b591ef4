from typing import Optional, List, Dict, Iterable, TYPE_CHECKING
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
import uuid

from kbase.core.errors import EmailAlreadyRegistered
from kbase.db.models.user import User as UserModel
from kbase.db.repositories.base import guard_backend

if TYPE_CHECKING:
    from kbase.domains.identity.entities import User


class UserRepository:
    """Репозиторий для работы с профилями пользователей"""
    
    def __init__(self, session: AsyncSession):
        self.session = session
    
    @guard_backend
    async def create(self, user: "User") -> "User":
        """Создание нового пользователя"""
        db_user = UserModel(
            uuid=user.uuid,
            email=user.email,
            username=user.username,
            password_hash=user.password_hash,
            avatar_url=user.avatar_url,
            is_active=user.is_active
        )
        
        self.session.add(db_user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise EmailAlreadyRegistered("User with this email or username already exists")
        await self.session.refresh(db_user)
        return self._to_domain(db_user)
    
    @guard_backend
    async def get_by_uuid(self, user_uuid: uuid.UUID) -> Optional["User"]:
        """Получение пользователя по UUID"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid == user_uuid)
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None
    
    @guard_backend
    async def get_by_email(self, email: str) -> Optional["User"]:
        """Получение пользователя по email"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.strip().lower())
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None
    
    @guard_backend
    async def get_many(self, user_uuids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, "User"]:
        """Пакетное получение пользователей одним запросом"""
        ids = set(user_uuids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid.in_(ids))
        )
        return {db_user.uuid: self._to_domain(db_user) for db_user in result.scalars().all()}
    
    @guard_backend
    async def get_by_usernames(self, usernames: Iterable[str]) -> List["User"]:
        """Получение пользователей по списку username"""
        names = set(usernames)
        if not names:
            return []
        result = await self.session.execute(
            select(UserModel).where(UserModel.username.in_(names))
        )
        return [self._to_domain(db_user) for db_user in result.scalars().all()]
    
    @guard_backend
    async def update_password(self, user: "User") -> None:
        """Сохранение нового хеша пароля"""
        await self.session.execute(
            update(UserModel)
            .where(UserModel.uuid == user.uuid)
            .values(password_hash=user.password_hash, updated_at=user.updated_at)
        )
        await self.session.commit()
    
    @guard_backend
    async def email_exists(self, email: str) -> bool:
        """Проверка существования email"""
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.email == email.strip().lower())
        )
        return result.scalar_one_or_none() is not None
    
    @guard_backend
    async def username_exists(self, username: str) -> bool:
        """Проверка существования username"""
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.username == username)
        )
        return result.scalar_one_or_none() is not None
    
    def _to_domain(self, db_user: UserModel) -> "User":
        """Преобразование модели БД в доменную сущность"""
        from kbase.domains.identity.entities import User
        
        return User(
            uuid=db_user.uuid,
            email=db_user.email,
            username=db_user.username,
            password_hash=db_user.password_hash,
            avatar_url=db_user.avatar_url,
            is_active=db_user.is_active,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at
        )
