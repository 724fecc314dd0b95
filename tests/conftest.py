"""
Pytest configuration and fixtures.
"""

import os

# Settings require a secret key; set one before the app is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from typing import AsyncGenerator, Callable, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.core.config import get_settings
from backend.app.core.context import get_attachment_manager
from backend.app.core.database import Base, enable_sqlite_foreign_keys, get_db
from backend.app.core.resilience import CircuitBreaker
from backend.app.core.security import Role
from backend.app.models import UserORM  # noqa: F401  registers all tables on Base.metadata
from backend.app.services.attachment_service import AttachmentManager
from backend.app.services.auth_service import hash_password
from backend.app.services.blob_store import BlobStoreError, InMemoryBlobStore
from tests.helpers import TEST_PASSWORD

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)

TestingSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class FlakyBlobStore(InMemoryBlobStore):
    """In-memory store whose operations can be made to fail on demand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_upload_for: List[str] = []
        self.fail_sign = False
        self.fail_remove = False
        self.removed: List[str] = []

    async def upload(self, key, data, content_type, upsert=False):
        if any(key.endswith(name) for name in self.fail_upload_for):
            raise BlobStoreError(f"Simulated upload failure for {key}")
        return await super().upload(key, data, content_type, upsert=upsert)

    async def create_signed_url(self, key, expires_in):
        if self.fail_sign:
            raise BlobStoreError(f"Simulated sign failure for {key}")
        return await super().create_signed_url(key, expires_in)

    async def remove(self, keys):
        if self.fail_remove:
            raise BlobStoreError("Simulated remove failure")
        self.removed.extend(keys)
        await super().remove(keys)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Creates a fresh database for a test.
    Tables are dropped after the test completes.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def blob_store() -> FlakyBlobStore:
    settings = get_settings()
    return FlakyBlobStore(
        bucket=settings.storage_bucket,
        public_base_url="http://test/storage",
        signing_key=settings.secret_key,
    )


@pytest.fixture
def attachment_manager(blob_store: FlakyBlobStore) -> AttachmentManager:
    # A breaker per test so simulated failures never trip the shared one
    return AttachmentManager(
        blob_store,
        circuit_breaker=CircuitBreaker("test-blob-store", failure_threshold=100),
    )


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, attachment_manager: AttachmentManager) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database and attachment manager dependencies overridden.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attachment_manager] = lambda: attachment_manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory inserting a user with TEST_PASSWORD."""
    async def _make_user(username: str, role: Role, department: str = "Operations",
                         is_active: bool = True, password: Optional[str] = None) -> UserORM:
        user = UserORM(
            username=username,
            hashed_password=hash_password(password or TEST_PASSWORD),
            role=role.value,
            department=department,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return _make_user


@pytest.fixture
async def admin(make_user) -> UserORM:
    return await make_user("admin", Role.ADMIN, department="Administration")


@pytest.fixture
async def superuser(make_user) -> UserORM:
    return await make_user("reviewer", Role.SUPERUSER, department="Quality")


@pytest.fixture
async def reporter(make_user) -> UserORM:
    return await make_user("alice", Role.USER)


@pytest.fixture
async def other_reporter(make_user) -> UserORM:
    return await make_user("bob", Role.USER, department="Field")

