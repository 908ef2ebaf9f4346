"""Script to initialize the database."""

import asyncio

import structlog
from sqlalchemy import text

from app.config import settings
from app.database import Database
from app.middleware.logging import configure_logging
from app.models import metadata

logger = structlog.get_logger()


async def init_db() -> None:
    """Create all scheduling tables without going through migrations."""
    database = Database.from_settings(settings)
    try:
        async with database.engine.begin() as conn:
            if conn.dialect.name == "postgresql":
                await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
            await conn.run_sync(metadata.create_all)
        logger.info("database_initialized", tables=sorted(metadata.tables))
    finally:
        await database.dispose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(init_db())
