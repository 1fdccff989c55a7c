"""Shared fixtures for SQLite-backed integration tests.

Every test gets a fresh in-memory database with the full schema and a
container wired to the real SQLAlchemy repositories.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from tollgate.core.config import Settings
from tollgate.core.container import Container, create_container
from tollgate.db.session import build_session_factory
from tollgate.models import Base


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory over the test engine."""
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def container(session_factory) -> AsyncGenerator[Container, None]:
    """Container over the test database with default settings."""
    built = create_container(
        Settings(_env_file=None, STORE_READ_RETRY_ATTEMPTS=1), session_factory=session_factory
    )
    yield built
    await built.close()


@pytest_asyncio.fixture
async def file_container(tmp_path) -> AsyncGenerator[Container, None]:
    """Container over a file-backed database with a real connection pool.

    Unlike ``container``, every session gets its own connection, so
    concurrent units of work actually contend for the store.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tollgate.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    built = create_container(
        Settings(_env_file=None, LEDGER_TIMEOUT_SECONDS=30, STORE_READ_RETRY_ATTEMPTS=3),
        session_factory=build_session_factory(engine),
    )
    yield built
    await built.close()
    await engine.dispose()
