"""
Database connection and initialization
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from custodian.core.config import settings
from custodian.core.errors import storage_errors
from custodian.models.base import Base


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL

    Postgres gets a connection pool. SQLite connections are switched to
    ``BEGIN IMMEDIATE`` so that every transaction holds the write lock from
    its first statement, which serializes concurrent writers the same way
    row locks do on Postgres.
    """
    if make_url(url).get_backend_name() != "sqlite":
        return create_async_engine(
            url,
            echo=echo,
            future=True,
            pool_size=20,
            max_overflow=0,
            pool_pre_ping=True,
        )

    engine = create_async_engine(
        url,
        echo=echo,
        future=True,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory used by every service call"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Create async session factory
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: AsyncEngine = None):
    """Initialize database and create tables"""
    # Import models so that they register on the metadata
    import custodian.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transaction(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """One session, one transaction, storage errors translated

    Commits when the block exits normally; any exception, including
    cancellation, rolls the whole unit back.
    """
    async with storage_errors():
        async with session_factory() as session:
            async with session.begin():
                yield session


async def run_in_transaction(session_factory: async_sessionmaker, operation, *args, **kwargs):
    """Call ``operation(session, *args, **kwargs)`` inside its own transaction"""
    async with transaction(session_factory) as session:
        return await operation(session, *args, **kwargs)
