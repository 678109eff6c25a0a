"""Pytest configuration and fixtures for s3manager.

Environment is set before any s3manager import so Settings validation
passes. Database fixtures use in-memory SQLite (StaticPool keeps a single
connection so every session sees the same schema).
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-use-0123456789")
os.environ.setdefault("ENCRYPTION_SALT", "test-encryption-salt")

from collections.abc import AsyncIterator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from s3manager.api.v1.dependencies import get_audit_sink, get_client_factory
from s3manager.application.services import ConfigRegistry
from s3manager.core.limiter import limiter
from s3manager.infrastructure.persistence import models  # noqa: F401
from s3manager.infrastructure.persistence.database import Base, get_db, get_db_transactional
from s3manager.infrastructure.persistence.repositories import StorageConfigRepository
from s3manager.infrastructure.security.encryption import SecretEncryptor
from s3manager.infrastructure.security.jwt import mint_token
from s3manager.main import app
from tests.fakes import FakeClientFactory, FakeS3Client, RecordingAuditSink

limiter.enabled = False


@pytest.fixture(scope="session")
def encryptor() -> SecretEncryptor:
    """Fernet encryptor with a fixed test key (PBKDF2 runs once per session)."""
    return SecretEncryptor("unit-test-secret", "unit-test-salt")


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncIterator[AsyncSession]:
    """Session for repository/registry tests; never committed."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def client_factory(s3: FakeS3Client) -> FakeClientFactory:
    return FakeClientFactory(s3)


@pytest.fixture
def config_repo(db_session, encryptor) -> StorageConfigRepository:
    return StorageConfigRepository(db_session, encryptor)


@pytest.fixture
def registry(config_repo, audit_sink) -> ConfigRegistry:
    return ConfigRegistry(config_repo, audit_sink)


@pytest.fixture
async def client(session_factory, audit_sink, client_factory) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against the app with DB, audit sink and backend faked."""

    async def _db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    async def _db_transactional() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            async with session.begin():
                yield session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_db_transactional] = _db_transactional
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    app.dependency_overrides[get_client_factory] = lambda: client_factory
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def token_for() -> Callable[..., dict[str, str]]:
    """Build Authorization headers for an owner id (optionally admin)."""

    def _headers(owner_id: str, *, is_admin: bool = False) -> dict[str, str]:
        token = mint_token(owner_id, is_admin=is_admin)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def alice(token_for) -> dict[str, str]:
    return token_for("alice")


@pytest.fixture
def bob(token_for) -> dict[str, str]:
    return token_for("bob")


@pytest.fixture
def admin(token_for) -> dict[str, str]:
    return token_for("root-admin", is_admin=True)
