"""
Storage handle: async engine, session factory and event lock strategy.

One Storage is built at startup and kept on ``app.state``; every service call
receives it (or a session from it) explicitly. There is no module-level
engine.

Connection pooling (PostgreSQL):
  pool_size + max_overflow bound concurrent transactions. Requests beyond
  that wait up to DB_POOL_TIMEOUT seconds for a connection.
  lock_timeout bounds how long a registration waits on a contended event row.

SQLite:
  The sqlite3 driver defers BEGIN until the first write and breaks SAVEPOINT
  semantics. We take over transaction control (isolation_level=None + an
  explicit BEGIN), following the SQLAlchemy aiosqlite recipe, and enable
  foreign keys so registration cascades behave as on PostgreSQL.
  Transactions start with BEGIN IMMEDIATE: the write lock is taken up front,
  so concurrent writers queue on the busy timeout (DB_LOCK_TIMEOUT_MS)
  instead of failing with "database is locked" when a read lock cannot be
  upgraded.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import Settings, get_settings
from app.core.logging import get_logger
from app.db.base import Base
import app.models  # noqa: F401 - registers tables on Base.metadata
from app.services.interfaces.event_lock import EventLockStrategy
from app.services.strategy_factory import build_event_lock

logger = get_logger(__name__)


class Storage:
    def __init__(self, engine: AsyncEngine, event_lock: EventLockStrategy):
        self.engine = engine
        self.event_lock = event_lock
        self._sessionmaker = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        return self._sessionmaker()

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def _install_sqlite_transaction_control(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_storage(
    database_url: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Storage:
    settings = settings or get_settings()
    url = database_url or settings.DATABASE_URL
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            connect_args={"timeout": settings.DB_LOCK_TIMEOUT_MS / 1000},
        )
        _install_sqlite_transaction_control(engine)
    else:
        connect_args = {}
        if backend == "postgresql":
            connect_args["server_settings"] = {
                "lock_timeout": str(settings.DB_LOCK_TIMEOUT_MS),
            }
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    event_lock = build_event_lock(settings.EVENT_LOCK_STRATEGY, url)
    logger.info("storage_created", dialect=backend, event_lock=event_lock.name)
    return Storage(engine, event_lock)


def get_storage(request: Request) -> Storage:
    """FastAPI dependency: the Storage handle built during startup."""
    return request.app.state.storage


async def get_db(
    storage: Storage = Depends(get_storage),
) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with storage.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
