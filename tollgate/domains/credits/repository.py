"""Credit repository backed by SQLAlchemy."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.db.statements import insert_or_ignore
from tollgate.domains.credits.protocols import CreditRepositoryProtocol
from tollgate.domains.credits.types import CreditBalance, PoolDeltas, TransactionType
from tollgate.models._base import utcnow
from tollgate.models.credit_account import CreditAccount
from tollgate.models.credit_transaction import CreditTransaction


class CreditRepository(CreditRepositoryProtocol):
    """Reads and writes accounts and ledger rows; never commits."""

    async def get_account(
        self, db: AsyncSession, *, account_id: int, for_update: bool = False
    ) -> Optional[CreditAccount]:
        """Get an account, optionally with ``SELECT ... FOR UPDATE``."""
        stmt = (
            select(CreditAccount)
            .where(CreditAccount.account_id == account_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_account(
        self, db: AsyncSession, *, account_id: int, free_credits: int
    ) -> bool:
        """Insert the account unless one already exists for ``account_id``."""
        return await insert_or_ignore(
            db,
            CreditAccount,
            {
                "account_id": account_id,
                "free_credits": free_credits,
                "paid_credits": 0,
                "subscription_credits": 0,
            },
            conflict_columns=["account_id"],
        )

    async def swap_balance(
        self,
        db: AsyncSession,
        *,
        account_id: int,
        expected: CreditBalance,
        new: CreditBalance,
    ) -> bool:
        """Compare-and-swap all three pools in one UPDATE."""
        stmt = (
            update(CreditAccount)
            .where(
                CreditAccount.account_id == account_id,
                CreditAccount.free_credits == expected.free,
                CreditAccount.paid_credits == expected.paid,
                CreditAccount.subscription_credits == expected.subscription,
            )
            .values(
                free_credits=new.free,
                paid_credits=new.paid,
                subscription_credits=new.subscription,
                modified_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def set_subscription(
        self, db: AsyncSession, *, account_id: int, tier: Optional[str], status: Optional[str]
    ) -> None:
        """Record tier and status."""
        stmt = (
            update(CreditAccount)
            .where(CreditAccount.account_id == account_id)
            .values(subscription_tier=tier, subscription_status=status, modified_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)

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
        """Append a ledger row; a reused idempotency key inserts nothing."""
        values = {
            "id": transaction_id,
            "account_id": account_id,
            "type": type.value,
            "pool_affected": pool_affected,
            "amount": deltas.amount,
            "free_delta": deltas.free,
            "paid_delta": deltas.paid,
            "subscription_delta": deltas.subscription,
            "balance_after": balance_after,
            "description": description,
            "idempotency_key": idempotency_key,
        }
        if idempotency_key is None:
            db.add(CreditTransaction(**values))
            await db.flush()
            return True
        return await insert_or_ignore(
            db, CreditTransaction, values, conflict_columns=["idempotency_key"]
        )

    async def get_transaction_by_key(
        self, db: AsyncSession, *, idempotency_key: str
    ) -> Optional[CreditTransaction]:
        """Get the ledger row recorded under an idempotency key."""
        stmt = select(CreditTransaction).where(
            CreditTransaction.idempotency_key == idempotency_key
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_transactions(
        self, db: AsyncSession, *, account_id: int, limit: Optional[int] = None
    ) -> list[CreditTransaction]:
        """Ledger rows for an account, newest first."""
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.account_id == account_id)
            .order_by(CreditTransaction.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def sum_deltas(self, db: AsyncSession, *, account_id: int) -> tuple[CreditBalance, int]:
        """Per-pool sums of every ledger row for an account, plus the row count."""
        stmt = select(
            func.coalesce(func.sum(CreditTransaction.free_delta), 0),
            func.coalesce(func.sum(CreditTransaction.paid_delta), 0),
            func.coalesce(func.sum(CreditTransaction.subscription_delta), 0),
            func.count(CreditTransaction.id),
        ).where(CreditTransaction.account_id == account_id)
        free, paid, subscription, count = (await db.execute(stmt)).one()
        return (
            CreditBalance(free=int(free), paid=int(paid), subscription=int(subscription)),
            int(count),
        )
