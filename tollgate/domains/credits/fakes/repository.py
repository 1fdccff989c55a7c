"""Fake credit repository for testing."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.domains.credits.types import CreditBalance, PoolDeltas, TransactionType
from tollgate.models._base import utcnow
from tollgate.models.credit_account import CreditAccount
from tollgate.models.credit_transaction import CreditTransaction


class FakeCreditRepository:
    """In-memory fake for CreditRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize empty in-memory stores."""
        self._accounts: dict[int, CreditAccount] = {}
        self._transactions: list[CreditTransaction] = []
        self._calls: list[tuple] = []
        self.fail_next_swap = False

    def seed(
        self,
        account_id: int,
        free: int = 0,
        paid: int = 0,
        subscription: int = 0,
        with_ledger: bool = True,
    ) -> CreditAccount:
        """Store an account; by default also a grant row per non-empty pool."""
        now = utcnow()
        account = CreditAccount(
            account_id=account_id,
            free_credits=free,
            paid_credits=paid,
            subscription_credits=subscription,
            created_at=now,
            modified_at=now,
        )
        self._accounts[account_id] = account
        if with_ledger:
            running = 0
            for field, amount in (("free", free), ("paid", paid), ("subscription", subscription)):
                if amount:
                    running += amount
                    self._append(
                        UUID(int=len(self._transactions) + 1),
                        account_id,
                        TransactionType.GRANT,
                        PoolDeltas(**{field: amount}),
                        field,
                        running,
                        None,
                        None,
                    )
        return account

    def call_count(self, method: str) -> int:
        """Return the number of times a method was called."""
        return sum(1 for name, *_ in self._calls if name == method)

    @property
    def transactions(self) -> list[CreditTransaction]:
        """Every stored ledger row, oldest first."""
        return list(self._transactions)

    def _append(
        self,
        transaction_id: UUID,
        account_id: int,
        type: TransactionType,
        deltas: PoolDeltas,
        pool_affected: str,
        balance_after: int,
        description: Optional[str],
        idempotency_key: Optional[str],
    ) -> None:
        now = utcnow()
        self._transactions.append(
            CreditTransaction(
                id=transaction_id,
                account_id=account_id,
                type=type.value,
                pool_affected=pool_affected,
                amount=deltas.amount,
                free_delta=deltas.free,
                paid_delta=deltas.paid,
                subscription_delta=deltas.subscription,
                balance_after=balance_after,
                description=description,
                idempotency_key=idempotency_key,
                created_at=now,
                modified_at=now,
            )
        )

    async def get_account(
        self, db: AsyncSession, *, account_id: int, for_update: bool = False
    ) -> Optional[CreditAccount]:
        """Get an account."""
        self._calls.append(("get_account", db, account_id, for_update))
        return self._accounts.get(account_id)

    async def create_account(
        self, db: AsyncSession, *, account_id: int, free_credits: int
    ) -> bool:
        """Create an account unless it exists."""
        self._calls.append(("create_account", db, account_id, free_credits))
        if account_id in self._accounts:
            return False
        self.seed(account_id, free=free_credits, with_ledger=False)
        return True

    async def swap_balance(
        self,
        db: AsyncSession,
        *,
        account_id: int,
        expected: CreditBalance,
        new: CreditBalance,
    ) -> bool:
        """Compare-and-swap the pools."""
        self._calls.append(("swap_balance", db, account_id, expected, new))
        if self.fail_next_swap:
            self.fail_next_swap = False
            return False
        account = self._accounts.get(account_id)
        if account is None:
            return False
        current = CreditBalance(
            account.free_credits, account.paid_credits, account.subscription_credits
        )
        if current != expected:
            return False
        account.free_credits = new.free
        account.paid_credits = new.paid
        account.subscription_credits = new.subscription
        return True

    async def set_subscription(
        self, db: AsyncSession, *, account_id: int, tier: Optional[str], status: Optional[str]
    ) -> None:
        """Record tier and status."""
        self._calls.append(("set_subscription", db, account_id, tier, status))
        account = self._accounts[account_id]
        account.subscription_tier = tier
        account.subscription_status = status

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
        """Append a ledger row unless the idempotency key is taken."""
        self._calls.append(("add_transaction", db, account_id, type, deltas, idempotency_key))
        if idempotency_key is not None and any(
            t.idempotency_key == idempotency_key for t in self._transactions
        ):
            return False
        self._append(
            transaction_id,
            account_id,
            type,
            deltas,
            pool_affected,
            balance_after,
            description,
            idempotency_key,
        )
        return True

    async def get_transaction_by_key(
        self, db: AsyncSession, *, idempotency_key: str
    ) -> Optional[CreditTransaction]:
        """Get the ledger row recorded under an idempotency key."""
        self._calls.append(("get_transaction_by_key", db, idempotency_key))
        for transaction in self._transactions:
            if transaction.idempotency_key == idempotency_key:
                return transaction
        return None

    async def list_transactions(
        self, db: AsyncSession, *, account_id: int, limit: Optional[int] = None
    ) -> list[CreditTransaction]:
        """Ledger rows for an account, newest first."""
        self._calls.append(("list_transactions", db, account_id, limit))
        rows = [t for t in reversed(self._transactions) if t.account_id == account_id]
        return rows if limit is None else rows[:limit]

    async def sum_deltas(self, db: AsyncSession, *, account_id: int) -> tuple[CreditBalance, int]:
        """Per-pool sums plus row count."""
        self._calls.append(("sum_deltas", db, account_id))
        rows = [t for t in self._transactions if t.account_id == account_id]
        return (
            CreditBalance(
                free=sum(t.free_delta for t in rows),
                paid=sum(t.paid_delta for t in rows),
                subscription=sum(t.subscription_delta for t in rows),
            ),
            len(rows),
        )
