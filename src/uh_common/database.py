"""Async PostgreSQL engine and per-request sessions for userhub.

One engine per process, sized by DB_POOL_SIZE / DB_MAX_OVERFLOW. Sessions do
not expire loaded users on commit: the application services commit first and
then build the response (and invalidate the cache) from the same objects.
Routers never commit; the services own the transaction boundary.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the users table (and anything added later)."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,  # the health route should not hand out dead connections
)

session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back by close() if the service never committed."""
    async with session_factory() as session:
        yield session
