from sqlalchemy import event
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import DeclarativeBase

from docvault.infrastructure.config.settings import Settings, get_settings

# Connection execution option: start a deferred transaction on SQLite
READ_ONLY_OPTION = "docvault_read_only"


# Modern SQLAlchemy 2.0 pattern
class Base(DeclarativeBase):
    """Base class for all database models"""

    pass


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """
    Create the async engine for the configured database.

    PostgreSQL (asyncpg) gets a sized connection pool and a statement timeout;
    SQLite (aiosqlite) gets a busy timeout so concurrent writers wait for the
    lock instead of failing immediately.
    """
    settings = settings or get_settings()

    if "postgresql" in settings.database_url:
        return create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=30,
            pool_recycle=3600,
            query_cache_size=1200,
            connect_args={
                "server_settings": {"jit": "off"},
                "command_timeout": settings.database_command_timeout,
            },
        )

    if not settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=settings.database_echo)

    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        connect_args={"timeout": settings.database_command_timeout},
    )

    # Take the write lock at BEGIN; deferred transactions that later upgrade
    # to writers fail with "database is locked" instead of waiting. Sessions
    # that only read opt out through READ_ONLY_OPTION.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        if conn.get_execution_options().get(READ_ONLY_OPTION):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """
    Create all tables.

    Production schemas are managed by migrations; this is for tests and
    local development.
    """
    # Register every model on Base.metadata
    import docvault.infrastructure.persistence.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
