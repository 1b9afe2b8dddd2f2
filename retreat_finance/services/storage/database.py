"""
Pooled async database access.

One Database instance is the single logical store of the system. It owns
the SQLAlchemy AsyncEngine (and its connection pool) and hands out
sessions in two flavours:

- session():     a read transaction. Every statement inside it sees the
                 same snapshot of the store.
- transaction(): a write transaction. Writers are serialized by an
                 asyncio lock, the whole block commits on success and
                 rolls back on any error.

Driver errors are classified into StorageError here, so nothing above this
layer ever sees a raw SQLAlchemy exception.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from retreat_finance.config import DatabaseSettings, get_settings
from retreat_finance.errors import RetreatFinanceError, StorageError
from retreat_finance.services.storage.records import Base


logger = structlog.get_logger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _install_sqlite_hooks(engine: AsyncEngine, settings: DatabaseSettings, in_memory: bool) -> None:
    """
    Make SQLite behave like the relational store the core expects.

    - foreign keys are off by default in SQLite; CASCADE/RESTRICT need them
    - the driver's implicit transaction handling only emits BEGIN before
      DML, so multi-SELECT reads would not share a snapshot; we take over
      and emit BEGIN ourselves
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if settings.sqlite_wal and not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """
    Create the AsyncEngine and its connection pool.

    An in-memory SQLite database only exists inside one connection, so it
    gets a StaticPool (one shared connection) instead of a sized pool.
    """
    url = settings.url
    in_memory = _is_memory_sqlite(url)
    is_sqlite = make_url(url).get_backend_name() == "sqlite"

    engine_kwargs: dict = {"echo": settings.echo}
    if in_memory:
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
        )
    if is_sqlite:
        engine_kwargs["connect_args"] = {"timeout": settings.sqlite_busy_timeout}

    engine = create_async_engine(url, **engine_kwargs)
    if is_sqlite:
        _install_sqlite_hooks(engine, settings, in_memory)

    logger.info(
        "database_engine_created",
        backend=make_url(url).get_backend_name(),
        in_memory=in_memory,
        pool_size=None if in_memory else settings.pool_size,
    )
    return engine


class Database:
    """
    The shared store: engine, pool, session factory and writer lock.

    Usage:
        database = Database()
        await database.create_schema()

        async with database.transaction() as session:
            ...  # all writes commit together or not at all

        async with database.session() as session:
            ...  # reads from one snapshot
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self._settings = settings or get_settings().database
        self._engine = create_engine(self._settings)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._write_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _create_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def create_schema(self) -> None:
        """
        Create all tables (CREATE TABLE IF NOT EXISTS).

        Retried a few times on OperationalError, which is what a locked
        SQLite file or a briefly unreachable server looks like.
        """
        try:
            await self._create_all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create schema: {e}") from e
        logger.info("database_schema_ready")

    async def ping(self) -> bool:
        """Cheap connectivity check for collaborators' health endpoints."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except StorageError:
            return False

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside one read transaction."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except RetreatFinanceError:
            raise
        except SQLAlchemyError as e:
            logger.error("database_read_failed", error=str(e))
            raise StorageError(f"Storage read failed: {e}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside one write transaction.

        The session is committed on successful exit and rolled back on
        exception. Only one write transaction runs at a time.
        """
        async with self._write_lock:
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        yield session
            except RetreatFinanceError:
                raise
            except SQLAlchemyError as e:
                logger.error("database_write_failed", error=str(e))
                raise StorageError(f"Storage write failed: {e}") from e

    async def dispose(self) -> None:
        """Release all pooled connections."""
        await self._engine.dispose()
        logger.info("database_engine_disposed")
