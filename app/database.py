"""Database configuration and connection management."""

from collections.abc import AsyncGenerator

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import Settings

logger = structlog.get_logger(__name__)


def to_async_url(database_url: str) -> str:
    """Convert a sync PostgreSQL URL to the asyncpg driver."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class Database:
    """Owns the async engine and session factory for one process.

    Created during application startup and disposed at shutdown; request
    handlers reach it through the ``get_db`` dependency only.
    """

    def __init__(self, engine: AsyncEngine):
        """Wrap an existing engine."""
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create engine with connection pooling from settings."""
        url = to_async_url(settings.database_url)
        options: dict = {"echo": settings.debug, "pool_pre_ping": True}
        if url.startswith("postgresql+asyncpg://"):
            options.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_recycle=3600,
                connect_args={
                    "server_settings": {
                        "application_name": settings.app_name,
                    },
                },
            )
        return cls(create_async_engine(url, **options))

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("database_health_check_failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
