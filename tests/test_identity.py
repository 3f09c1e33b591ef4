from datetime import timedelta

import pytest

from kbase.core.errors import AuthenticationRequired, EmailAlreadyRegistered, InvalidCredentials, ValidationFailed
from kbase.core.security import create_access_token
from kbase.domains.identity.entities import User, display_name_for
from kbase.domains.identity.schemas import PasswordChange, UserCreate, UserLogin
from kbase.domains.identity.services import IdentityService


async def test_register_and_login(db):
    service = IdentityService(db)
    user = await service.register_user(UserCreate(email="Dana@Example.com", username="dana", password="Secret123"))

    assert user.email == "dana@example.com"
    token = await service.login_user(UserLogin(email="dana@example.com", password="Secret123"))
    current = await service.get_current_user_from_token(token)
    assert current == user


async def test_register_duplicates(db, alice):
    service = IdentityService(db)

    with pytest.raises(EmailAlreadyRegistered):
        await service.register_user(UserCreate(email=alice.email, username="other", password="Secret123"))
    with pytest.raises(ValidationFailed):
        await service.register_user(UserCreate(email="new@example.com", username="alice", password="Secret123"))


async def test_login_rejects_wrong_password(db, alice):
    with pytest.raises(InvalidCredentials):
        await IdentityService(db).login_user(UserLogin(email=alice.email, password="Wrong1234"))


async def test_bad_tokens_resolve_to_nobody(db, alice):
    service = IdentityService(db)
    expired = create_access_token({"sub": str(alice.uuid)}, expires_delta=timedelta(seconds=-1))

    assert await service.get_current_user_from_token("garbage") is None
    assert await service.get_current_user_from_token(expired) is None
    assert await service.get_current_user_from_token(create_access_token({"sub": "not-a-uuid"})) is None


async def test_change_password(db, alice):
    service = IdentityService(db)

    with pytest.raises(InvalidCredentials):
        await service.change_user_password(alice, PasswordChange(current_password="nope", new_password="Better123"))
    with pytest.raises(AuthenticationRequired):
        await service.change_user_password(None, PasswordChange(current_password="Secret123", new_password="Better123"))

    await service.change_user_password(alice, PasswordChange(current_password="Secret123", new_password="Better123"))
    token = await service.login_user(UserLogin(email=alice.email, password="Better123"))
    assert token


def test_display_name_falls_back_to_email():
    assert display_name_for("dana", "d@example.com") == "dana"
    assert display_name_for(None, "dana.k@example.com") == "dana.k"
    user = User.create_user("Z@Example.com", "zed", "Secret123")
    assert user.display_name == "zed"
    assert user.authenticate("Secret123")
