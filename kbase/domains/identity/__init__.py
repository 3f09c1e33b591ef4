from kbase.domains.identity.entities import User, display_name_for
from kbase.domains.identity.schemas import (
    UserBase, UserCreate, UserLogin, UserResponse, Token, SessionResponse, PasswordChange
)

__all__ = [
    "User", "display_name_for",
    "UserBase", "UserCreate", "UserLogin", "UserResponse",
    "Token", "SessionResponse", "PasswordChange"
]
