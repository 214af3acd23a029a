"""Alembic runner for the userhub schema.

Revisions are raw SQL (see versions/). UserModel is imported only so that
`alembic check` can compare the ORM mapping against the live users table.
The database URL always comes from settings, never from alembic.ini.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from config.settings import settings
from src.uh_common.database import Base
from src.uh_user.infrastructure.db_models import UserModel  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def emit_sql_script() -> None:
    """`alembic upgrade --sql`: print the users DDL instead of applying it."""
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def apply_to_database() -> None:
    engine = create_async_engine(settings.DATABASE_URL)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    emit_sql_script()
else:
    asyncio.run(apply_to_database())
