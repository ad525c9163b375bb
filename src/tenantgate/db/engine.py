"""Async SQLAlchemy engine and session factory.

Learn: One engine with connection pooling for the process; every unit of work
opens its own AsyncSession from the factory and closes it when done.
Request handlers never share a session.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenantgate.config import settings
from tenantgate.repositories.unit_of_work import UnitOfWork


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN.

    SQLite has no row locks. Writers are serialized up front instead, so a
    second transaction waits for the first to commit and then sees its rows,
    rather than failing with "database is locked" halfway through.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        # SQLite (tests, local dev) manages its own pool.
        engine = create_async_engine(url, echo=echo)
        _use_immediate_transactions(engine)
        return engine
    return create_async_engine(
        url, echo=echo, pool_size=5, max_overflow=15, pool_pre_ping=True
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)

# Each unit of work opens its own session from this factory.
async_session_factory = build_session_factory(engine)


def get_uow() -> UnitOfWork:
    """FastAPI dependency: a unit of work bound to the app's session factory."""
    return UnitOfWork(async_session_factory)
