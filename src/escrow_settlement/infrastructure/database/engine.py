"""Async database engine and session factory construction.

Provides:
    - create_db_engine: builds the SQLAlchemy async engine from Settings.
    - create_session_factory: a sessionmaker bound to that engine.
    - init_db: waits for the database and creates tables.
    - close_db: disposes the engine.

Nothing here is a module-level singleton: the application lifespan owns the
engine and hands the session factory to the LedgerStore.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import event, text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from escrow_settlement.infrastructure.database.orm_models import Base
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_settlement.config import Settings

logger = get_logger(__name__)


def _configure_sqlite_connection(dbapi_connection, connection_record):  # noqa: ANN001
    # Let SQLAlchemy emit BEGIN itself (see _begin_immediate).
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn):  # noqa: ANN001
    # SQLite ignores FOR UPDATE; taking the write lock at BEGIN serializes
    # ledger transactions and notarization patches across connections.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine. Pool sizing applies to server databases only."""
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo_sql,
            connect_args={"timeout": 30},
        )
        event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
        event.listen(engine.sync_engine, "begin", _begin_immediate)
        logger.info("database.engine_created", backend="sqlite")
        return engine

    engine = create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
        echo=settings.db_echo_sql,
    )
    logger.info(
        "database.engine_created",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit so snapshots stay readable."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def wait_for_database(engine: AsyncEngine, attempts: int = 5) -> None:
    """Ping the database, retrying with exponential backoff while it starts up."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((OSError, OperationalError, InterfaceError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))


async def init_db(engine: AsyncEngine, settings: Settings) -> None:
    """Wait for the database, then create tables if they don't exist."""
    await wait_for_database(engine, attempts=settings.db_connect_attempts)

    if settings.db_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("database.tables_created")
    else:
        logger.info("database.skipping_create_all", reason="db_create_tables disabled")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the database engine. Called during FastAPI's lifespan shutdown."""
    await engine.dispose()
    logger.info("database.engine_disposed")
