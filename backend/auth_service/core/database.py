"""Async database engine and session management.

Configures the SQLAlchemy async engine with connection pooling and
provides the per-request session dependency.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from auth_service.core.config import settings
from auth_service.core.errors import AuthError

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    Commits on success. A typed authentication failure also commits:
    attempt counts and discarded challenges written before the failure
    must persist. Anything else rolls back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except AuthError:
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise


async def check_database() -> bool:
    """Run a trivial query to confirm the database is reachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True
