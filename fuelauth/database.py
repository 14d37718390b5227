"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - configure_locking(): Bounded lock waits for every transaction
  - get_session_factory(): FastAPI dependency that provides the session factory

Why a session factory instead of a session per request?
  A single webhook delivery spans several units of work: the idempotency
  claim is committed before authorization starts, and a failed authorization
  is recorded in a fresh transaction after the failed one is rolled back.
  The webhook service therefore opens its own sessions.

Locking:
  PostgreSQL honours SELECT ... FOR UPDATE. Every transaction sets
  `lock_timeout` so a blocked lock wait fails fast instead of hanging.

  SQLite ignores FOR UPDATE. To get the same serialization, every
  transaction is started with BEGIN IMMEDIATE, which takes the database
  write lock up front, and `busy_timeout` bounds the wait for it. The
  pysqlite/aiosqlite driver's own BEGIN handling is disabled so that our
  BEGIN is the only one emitted.
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from fuelauth.config import settings


def configure_locking(engine: AsyncEngine, lock_timeout_seconds: float) -> None:
    """
    Install connection/transaction hooks that bound lock waits.

    Called once for every engine the application (or the test suite) creates.
    """
    sync_engine = engine.sync_engine
    timeout_ms = int(lock_timeout_seconds * 1000)

    if sync_engine.dialect.name == "sqlite":

        @event.listens_for(sync_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            # Disable the driver's implicit BEGIN; we emit our own below.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {timeout_ms}")
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        @event.listens_for(sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    elif sync_engine.dialect.name == "postgresql":

        @event.listens_for(sync_engine, "begin")
        def _postgres_begin(conn):
            conn.exec_driver_sql(f"SET LOCAL lock_timeout = '{timeout_ms}ms'")


# Create the async engine.
# echo=True in debug mode logs all SQL statements.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)
configure_locking(engine, settings.LOCK_TIMEOUT_SECONDS)

# Session factory for the webhook service's units of work.
# expire_on_commit=False keeps loaded attributes readable after commit;
# a post-commit lazy load would need a synchronous DB call.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides metadata tracking
    for schema creation and common declarative mapping features.
    """
    pass


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    FastAPI dependency that provides the session factory.

    Tests override this to point the webhook endpoint at their own database.
    """
    return AsyncSessionLocal


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
