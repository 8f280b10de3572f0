# apilabs/db/session.py
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from apilabs.config import DATABASE_URL, SQL_ECHO


def serialize_sqlite_writes(async_engine: AsyncEngine) -> AsyncEngine:
    """
    Make every SQLite transaction take the database write lock up front.

    SQLite ignores FOR UPDATE and the driver defers BEGIN until the first
    write, so two balance checks could otherwise read the same row and both
    pass. With BEGIN IMMEDIATE a second writer waits until the first commits.
    No-op for other backends.
    """
    if async_engine.dialect.name != "sqlite":
        return async_engine

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # hand BEGIN/COMMIT over to SQLAlchemy
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return async_engine


# Async engine
engine = serialize_sqlite_writes(create_async_engine(DATABASE_URL, echo=SQL_ECHO, future=True))

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

Base = declarative_base()


async def init_db(bind=None) -> None:
    """
    Create all tables that do not exist yet.
    """
    # models must be imported so their tables are registered on Base.metadata
    from apilabs.db import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
