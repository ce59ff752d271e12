from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.utils.settings.database import DatabaseSettings


def build_async_engine(settings: DatabaseSettings | None = None) -> AsyncEngine:
    """Engine for the profile store described by ``settings``."""
    settings = settings or DatabaseSettings()
    options: dict[str, Any] = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    if not settings.uses_sqlite:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return create_async_engine(settings.DATABASE_URL_ASYNC, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Services keep using rows after commit
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
