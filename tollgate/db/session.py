"""Database session configuration.

The engine and session factory are built by the container at startup rather
than at import time, so importing the library never opens a pool and tests
can swap in SQLite.
"""

from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncGenerator, Callable

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tollgate.core.config import Settings
from tollgate.core.logging import logger

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    Pool sizing applies to server databases only; SQLite (used in tests and
    local runs) gets SQLAlchemy's default pool for its driver.
    """
    url = settings.SQLALCHEMY_ASYNC_DATABASE_URI
    if url.startswith("sqlite"):
        return create_async_engine(url)

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,  # Recycle connections after 5 minutes
        pool_timeout=30,
        isolation_level="READ COMMITTED",
        connect_args={
            "server_settings": {
                # Kill idle transactions after 5 minutes
                "idle_in_transaction_session_timeout": "300000",
            },
            "command_timeout": 60,
        },
    )


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Return a zero-argument factory of session context managers.

    Example:
    -------
        get_db_context = build_session_factory(engine)
        async with get_db_context() as db:
            await db.execute(...)

    """
    session_maker = async_sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as db:
            try:
                yield db
            finally:
                try:
                    await db.close()
                except (OSError, sa_exc.DBAPIError) as e:
                    # Server may already have dropped an idle connection
                    logger.warning(f"[Store] Session close failed: {e}")

    return get_db_context
