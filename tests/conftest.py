"""
Общие фикстуры: база SQLite в памяти, пользователи и управляемые часы.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy.pool import StaticPool

from kbase.core.db import create_tables
from kbase.db.base import utcnow
from kbase.db.repositories.user_repository import UserRepository
from kbase.domains.documents.schemas import DocumentCreate
from kbase.domains.documents.services import DocumentService
from kbase.domains.documents.versioning import VersionManager
from kbase.domains.identity.entities import User


class FakeClock:
    """Часы, которые двигаются только вручную"""

    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def version_manager(db, clock):
    return VersionManager(db, clock=clock, throttle_seconds=60)


@pytest.fixture
def document_service(db, version_manager):
    return DocumentService(db, version_manager=version_manager)


async def _create_user(db, username: str) -> User:
    user = User.create_user(email=f"{username}@example.com", username=username, password="Secret123")
    return await UserRepository(db).create(user)


@pytest.fixture
async def alice(db):
    return await _create_user(db, "alice")


@pytest.fixture
async def bob(db):
    return await _create_user(db, "bob")


@pytest.fixture
async def carol(db):
    return await _create_user(db, "carol")


@pytest.fixture
def make_document(document_service):
    async def _make(author: User, title: str = "Notes", content: str = "", is_public: bool = False):
        return await document_service.create_document(
            DocumentCreate(title=title, content=content, is_public=is_public),
            author
        )
    return _make
