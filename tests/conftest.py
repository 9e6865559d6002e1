"""
Pytest configuration and shared fixtures.

This file provides common fixtures for all tests.

Tests run against a file-backed SQLite database created fresh for every test
function (tables from SQLModel.metadata), so no database server is needed.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

# Settings are read once at import time, so the test environment must be in
# place before anything from gatekeeper is imported.
os.environ.setdefault("JWT_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-fedcba9876543210")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel  # noqa: E402

import gatekeeper.models  # noqa: E402, F401  # registers tables on SQLModel.metadata
from gatekeeper.config import AuthProvider, UserRole  # noqa: E402
from gatekeeper.core.database import get_db  # noqa: E402
from gatekeeper.core.security import TokenIssuer, get_password_hash  # noqa: E402
from gatekeeper.main import app as main_app  # noqa: E402
from gatekeeper.models.user import Users  # noqa: E402
from gatekeeper.services.session_tracker import RequestContext  # noqa: E402

TEST_PASSWORD = "CorrectHorse42!"


@pytest.fixture(scope="function")
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a test database engine for each test function.

    Scope is "function" so the async engine runs in the same event loop as the
    function-scoped db_session fixture. The database lives in tmp_path, so
    several sessions (connections) can share it, which the concurrency tests
    rely on.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gatekeeper_test.db'}")

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test."""
    async with session_maker() as session:
        yield session

        # Cleanup - rollback any changes left uncommitted by the test
        await session.rollback()


@pytest.fixture(scope="function")
def app(db_session: AsyncSession) -> FastAPI:
    """
    Create FastAPI app with test database session.

    This overrides the database dependency to use the test session.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/auth/profile")
            assert response.status_code == 401
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer()


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext(ip="203.0.113.7", user_agent="pytest-agent/1.0", device_id="device-1")


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
async def test_user(db_session: AsyncSession) -> Users:
    """
    Create an active local user whose password is TEST_PASSWORD.

    Usage:
        async def test_login(test_user, client):
            await client.post("/api/v1/auth/login",
                              json={"email": test_user.email, "password": TEST_PASSWORD})
    """
    user = Users(
        email="fixture@example.com",
        username="fixture_user",
        password=get_password_hash(TEST_PASSWORD),
        first_name="Fixture",
        last_name="User",
        role=UserRole.USER,
        provider=AuthProvider.LOCAL,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def oauth_only_user(db_session: AsyncSession) -> Users:
    """A user created through a provider login (no password)."""
    user = Users(
        email="oauth@example.com",
        password=None,
        first_name="Oauth",
        provider=AuthProvider.GITHUB,
        provider_id="gh-1001",
        is_verified=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user
