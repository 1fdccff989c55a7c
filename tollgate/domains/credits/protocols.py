"""Protocols for the credits domain."""

from typing import Optional, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.domains.credits.types import CreditBalance, PoolDeltas, TransactionType
from tollgate.models.credit_account import CreditAccount
from tollgate.models.credit_transaction import CreditTransaction


@runtime_checkable
class CreditRepositoryProtocol(Protocol):
    """Data access for credit accounts and their transaction log.

    Implementations never commit; the ledger owns the transaction.
    """

    async def get_account(
        self, db: AsyncSession, *, account_id: int, for_update: bool = False
    ) -> Optional[CreditAccount]:
        """Get an account, optionally locking its row until the transaction ends."""
        ...

    async def create_account(
        self, db: AsyncSession, *, account_id: int, free_credits: int
    ) -> bool:
        """Create an account. False if it already existed."""
        ...

    async def swap_balance(
        self,
        db: AsyncSession,
        *,
        account_id: int,
        expected: CreditBalance,
        new: CreditBalance,
    ) -> bool:
        """Write ``new`` only if the stored pools still equal ``expected``."""
        ...

    async def set_subscription(
        self, db: AsyncSession, *, account_id: int, tier: Optional[str], status: Optional[str]
    ) -> None:
        """Record the account's subscription tier and status."""
        ...

    async def add_transaction(
        self,
        db: AsyncSession,
        *,
        transaction_id: UUID,
        account_id: int,
        type: TransactionType,
        deltas: PoolDeltas,
        pool_affected: str,
        balance_after: int,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """Append a ledger row. False if ``idempotency_key`` was already used."""
        ...

    async def get_transaction_by_key(
        self, db: AsyncSession, *, idempotency_key: str
    ) -> Optional[CreditTransaction]:
        """Get the ledger row recorded under an idempotency key."""
        ...

    async def list_transactions(
        self, db: AsyncSession, *, account_id: int, limit: Optional[int] = None
    ) -> list[CreditTransaction]:
        """Ledger rows for an account, newest first."""
        ...

    async def sum_deltas(self, db: AsyncSession, *, account_id: int) -> tuple[CreditBalance, int]:
        """Per-pool sums of every ledger row for an account, plus the row count."""
        ...
