"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession per store operation. The SQLCredentialStore receives the
session factory, not the engine, so tests can hand it their own.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenantauth.config import settings
from tenantauth.db.models import Base

# pool_pre_ping drops dead connections before the authenticator sees them.
# echo=True in dev to see SQL queries.
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Session factory — each store operation gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_models(target: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
