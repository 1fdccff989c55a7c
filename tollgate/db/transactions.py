"""Store access policy: one session per unit, bounded time, reads retried.

Every ledger operation goes through a ``TransactionRunner``:

* ``write()`` runs one unit of work in one session and commits once at the
  end. Any exception rolls the whole unit back (the session is closed without
  a commit). Writes are never retried here; the caller decides, and only
  idempotent writes are safe to repeat.
* ``read()`` runs a non-mutating unit and retries transient store failures
  with exponential backoff.

Both bound the unit with ``timeout`` seconds and translate timeouts and
connection failures into ``StoreUnavailableError``.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tollgate.core.exceptions import LedgerConflictError, StoreUnavailableError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.db.session import SessionFactory

T = TypeVar("T")

Unit = Callable[[AsyncSession], Awaitable[T]]

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.TimeoutError,
    OSError,
)


class TransactionRunner:
    """Runs units of work against the store with timeout and retry policy."""

    def __init__(
        self,
        session_factory: SessionFactory,
        timeout: float = 5.0,
        read_attempts: int = 3,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the runner.

        Args:
            session_factory: Zero-argument factory of session context managers.
            timeout: Seconds a single unit may take before it is abandoned.
            read_attempts: Total attempts for ``read()`` on transient failure.
            logger: Optional logger; defaults to the package logger.
        """
        self._session_factory = session_factory
        self._timeout = timeout
        self._read_attempts = max(1, read_attempts)
        self._logger = (logger or default_logger).with_prefix("[Store] ")

    async def write(self, operation: str, unit: Unit[T]) -> T:
        """Run a mutating unit in one transaction. Never retried."""
        return await self._run(operation, unit, commit=True)

    async def read(self, operation: str, unit: Unit[T]) -> T:
        """Run a non-mutating unit, retrying transient store failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._read_attempts),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1.0),
            retry=retry_if_exception_type(StoreUnavailableError),
            reraise=True,
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    self._logger.warning(f"Retrying read '{operation}' (attempt {number})")
                return await self._run(operation, unit, commit=False)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _run(self, operation: str, unit: Unit[T], *, commit: bool) -> T:
        async def _unit() -> T:
            async with self._session_factory() as db:
                result = await unit(db)
                if commit:
                    await db.commit()
                return result

        try:
            return await asyncio.wait_for(_unit(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            self._logger.error(f"'{operation}' timed out after {self._timeout:.1f}s")
            raise StoreUnavailableError(operation, f"timed out after {self._timeout:.1f}s") from e
        except LedgerConflictError:
            raise
        except _TRANSIENT_ERRORS as e:
            self._logger.error(f"'{operation}' failed: {e}")
            raise StoreUnavailableError(operation, str(e)) from e
