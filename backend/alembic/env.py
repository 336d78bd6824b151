"""Alembic environment — async migration runner for the Pohoda export service.

Imports all models so Base.metadata is complete before autogenerate.

Design Decisions:
    - URL comes from Settings (DATABASE_URL env or .env), which already rewrites
      postgresql:// to postgresql+asyncpg://
    - An explicit sqlalchemy.url in alembic.ini wins, for one-off runs against another database
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from pohoda_export.config import get_settings
from pohoda_export.db.base import Base
from pohoda_export.models.order import Order, OrderItem  # noqa: F401
from pohoda_export.models.export_job import PohodaExportJob  # noqa: F401
from pohoda_export.models.audit_entry import AuditEntry  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_settings().database_url


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _database_url()
    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
