"""
Alembic environment configuration for async database migrations.

The database URL always comes from application settings (APP_DATABASE_URL),
so migrations run against the same PostgreSQL or SQLite database the
service is configured for.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger

# Importing the models package registers every table with Base.metadata
from garment_orders.database.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = get_settings()
logger = get_logger(__name__)

target_metadata = Base.metadata

config.set_main_option("sqlalchemy.url", settings.database_url)
logger.info(
    "Database URL configured from settings",
    url_prefix=settings.database_url.split("://")[0],
)


def run_migrations_offline() -> None:
    """
    Run migrations in 'offline' mode.

    Emits SQL to the script output without a DBAPI connection.
    """
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        logger.error("No database URL configured for offline migrations")
        raise ValueError("Database URL is required for migrations")

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=settings.is_sqlite,
    )

    with context.begin_transaction():
        context.run_migrations()
    logger.info("Offline migrations completed successfully")


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=settings.is_sqlite,
        transaction_per_migration=True,
    )

    try:
        with context.begin_transaction():
            context.run_migrations()
        logger.info("Migration execution completed successfully")
    except Exception as e:
        logger.error(
            "Migration execution failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def run_async_migrations() -> None:
    """
    Run migrations in 'online' mode over an async engine.
    """
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = settings.database_url

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    logger.info("Running migrations in online mode")
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
