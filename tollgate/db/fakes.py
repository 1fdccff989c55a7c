"""Session stand-ins for unit tests that run services against fake repositories."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from unittest.mock import AsyncMock

from tollgate.db.transactions import TransactionRunner


@asynccontextmanager
async def fake_db_context() -> AsyncGenerator[AsyncMock, None]:
    """Yield a mock session; fake repositories ignore it."""
    yield AsyncMock()


def make_fake_runner(timeout: float = 1.0, read_attempts: int = 1) -> TransactionRunner:
    """A TransactionRunner over ``fake_db_context``."""
    return TransactionRunner(fake_db_context, timeout=timeout, read_attempts=read_attempts)
