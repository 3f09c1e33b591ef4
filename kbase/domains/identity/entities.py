import uuid
from datetime import datetime
from typing import Optional

from kbase.core.security import get_password_hash, verify_password
from kbase.db.base import utcnow


class User:
    """Сущность пользователя домена Identity"""
    
    def __init__(
        self,
        uuid: uuid.UUID,
        email: str,
        username: str,
        password_hash: str,
        avatar_url: Optional[str] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.email = email
        self.username = username
        self.password_hash = password_hash
        self.avatar_url = avatar_url
        self.is_active = is_active
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()
    
    @property
    def display_name(self) -> str:
        """Имя для отображения: username или локальная часть email"""
        return display_name_for(self.username, self.email)
    
    def authenticate(self, password: str) -> bool:
        """Проверка пароля пользователя"""
        return verify_password(password, self.password_hash)
    
    def set_password(self, password: str) -> None:
        """Установка нового пароля"""
        self.password_hash = get_password_hash(password)
        self.updated_at = utcnow()
    
    @classmethod
    def create_user(cls, email: str, username: str, password: str) -> "User":
        """Создание нового пользователя с хешированием пароля"""
        return cls(
            uuid=uuid.uuid4(),
            email=email.strip().lower(),
            username=username,
            password_hash=get_password_hash(password)
        )
    
    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return False
        return self.uuid == other.uuid
    
    def __hash__(self) -> int:
        return hash(self.uuid)
    
    def __repr__(self) -> str:
        return f"User(uuid={self.uuid}, email={self.email})"


def display_name_for(username: Optional[str], email: Optional[str]) -> str:
    if username:
        return username
    if email:
        return email.split("@", 1)[0]
    return ""
