"""
Test configuration and fixtures
"""
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "dev"
os.environ["DEBUG"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-checksheet-workflow-0123456789"

from esqcms.db.database import Base, get_db
from esqcms.main import app
from esqcms.db.models import ChecksheetKind, ChecksheetStatus

from support import (
    INSPECTOR, OTHER_INSPECTOR, SUPERVISOR, OPERATOR,
    ChecksheetRef, InMemoryStore, bearer_headers, create_checksheet
)


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for tests"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with _session_factory(async_engine)() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# === Concurrency fixtures (real connections, file-backed database) ===

@pytest_asyncio.fixture(scope="function")
async def file_engine(tmp_path):
    """Engine with a real connection pool so two transactions can race"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def file_sessions(file_engine) -> async_sessionmaker:
    return _session_factory(file_engine)


@pytest_asyncio.fixture(scope="function")
async def race_client(file_sessions) -> AsyncGenerator[AsyncClient, None]:
    """Test client giving every request its own session (like production)"""

    async def override_get_db():
        async with file_sessions() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# === Actors ===

@pytest.fixture
def inspector_headers() -> dict[str, str]:
    return bearer_headers(INSPECTOR)


@pytest.fixture
def other_inspector_headers() -> dict[str, str]:
    return bearer_headers(OTHER_INSPECTOR)


@pytest.fixture
def supervisor_headers() -> dict[str, str]:
    return bearer_headers(SUPERVISOR)


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return bearer_headers(OPERATOR)


# === Sample Data Fixtures ===

@pytest_asyncio.fixture
async def sample_dir(db_session: AsyncSession) -> ChecksheetRef:
    """Pending DIR owned by INSPECTOR"""
    return await create_checksheet(
        db_session,
        ChecksheetKind.DIR,
        serial_number="SN-1001",
        recommendation="Accept",
    )


@pytest_asyncio.fixture
async def sample_fi(db_session: AsyncSession) -> ChecksheetRef:
    """Pending FI owned by INSPECTOR"""
    return await create_checksheet(
        db_session,
        ChecksheetKind.FI,
        fi_number="FI-2001",
        impeller_diameter=152.4,
    )


@pytest_asyncio.fixture
async def checked_dir(db_session: AsyncSession) -> ChecksheetRef:
    return await create_checksheet(db_session, ChecksheetKind.DIR, status=ChecksheetStatus.CHECKED)


@pytest_asyncio.fixture
async def revision_dir(db_session: AsyncSession) -> ChecksheetRef:
    return await create_checksheet(
        db_session,
        ChecksheetKind.DIR,
        status=ChecksheetStatus.REVISION,
        serial_number="SN-1002",
    )


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()
