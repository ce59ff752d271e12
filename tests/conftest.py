"""Global test configuration and fixtures for the Upblock API."""

import os

# Settings are read at import time; point them at test values first
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Callable

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.api.core.constants import JWT_ALGORITHM, JWT_AUDIENCE
from src.database.connection import build_session_factory
from src.database.models import Base, Profile
from src.services.credits import CreditLedgerService
from src.utils.settings.auth import AuthSettings
from tests.factories import ProfileFactory


@pytest.fixture
def profile_factory():
    return ProfileFactory


@pytest.fixture
def now() -> datetime:
    """Fixed clock in the middle of February 2024."""
    return datetime(2024, 2, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def async_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def credit_service(db_session, now) -> CreditLedgerService:
    """Credit ledger service pinned to the fixed test clock."""
    return CreditLedgerService(db_session, clock=lambda: now)


@pytest_asyncio.fixture
async def test_profile(db_session: AsyncSession, profile_factory) -> Profile:
    """Registered FREE_TRIAL user with nothing consumed."""
    return await profile_factory.create_async(db_session)


@pytest_asyncio.fixture
async def app(session_factory) -> AsyncGenerator[FastAPI, None]:
    """FastAPI application wired to the test database."""
    from src.api.core.dependencies import get_db_session
    from src.main import app

    async def _override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _override_db_session
    async with LifespanManager(app):
        yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def jwt_token_factory() -> Callable[..., str]:
    """Factory for creating Supabase-style access tokens."""
    auth_settings = AuthSettings()

    def create_token(
        user_id: str,
        email: str = "buyer@example.com",
        role: str = "authenticated",
        secret: str | None = None,
    ) -> str:
        payload = {
            "sub": user_id,
            "email": email,
            "role": role,
            "aud": JWT_AUDIENCE,
            "app_metadata": {"provider": "email", "providers": ["email"]},
            "is_anonymous": role == "anon",
        }
        return jwt.encode(
            payload,
            secret or auth_settings.SUPABASE_JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )

    return create_token


@pytest.fixture
def user_token(test_profile: Profile, jwt_token_factory) -> str:
    return jwt_token_factory(str(test_profile.id), test_profile.email)


@pytest_asyncio.fixture
async def public_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client without credentials."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test-upblock-api"
    ) as client:
        yield client


@pytest_asyncio.fixture
async def authorized_client(
    app: FastAPI, user_token: str
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as ``test_profile``."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test-upblock-api",
        headers={"Authorization": f"Bearer {user_token}"},
    ) as client:
        yield client
