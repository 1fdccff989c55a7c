"""Credit ledger: three-pool balances with an append-only transaction log.

Every mutation runs as one store transaction that locks the account row,
plans the change in memory, writes the new pools behind a compare-and-swap
guard, and appends exactly one ledger row. A lost compare-and-swap raises
``LedgerConflictError``; nothing is written and the call is not retried.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.exceptions import LedgerConflictError, ValidationError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.credits.protocols import CreditRepositoryProtocol
from tollgate.domains.credits.types import (
    DEBIT_ORDER,
    NO_POOL,
    REASON_ACCOUNT_NOT_FOUND,
    REASON_INSUFFICIENT_CREDITS,
    REVOKE_ORDER,
    CreditBalance,
    CreditPool,
    CreditResult,
    DebitResult,
    LedgerMeta,
    PoolDeltas,
    ReconcileReport,
    SubscriptionStatus,
    TransactionType,
    plan_debit,
)
from tollgate.models.credit_account import CreditAccount
from tollgate.schemas.credit import CreditAccount as CreditAccountSchema
from tollgate.schemas.credit import CreditTransaction

_NO_META = LedgerMeta()


def _balance_of(account: CreditAccount) -> CreditBalance:
    return CreditBalance(
        free=account.free_credits,
        paid=account.paid_credits,
        subscription=account.subscription_credits,
    )


class CreditLedger:
    """Owns every change to credit balances."""

    def __init__(
        self,
        repo: CreditRepositoryProtocol,
        runner: TransactionRunner,
        signup_credits: int = 5,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            repo: Account and transaction data access.
            runner: Opens, bounds and commits store transactions.
            signup_credits: Free credits granted when an account is created.
            logger: Optional logger; defaults to the package logger.
        """
        self._repo = repo
        self._runner = runner
        self._signup_credits = signup_credits
        self._logger = (logger or default_logger).with_prefix("[CreditLedger] ")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def balance(self, account_id: int) -> Optional[CreditBalance]:
        """Current pools of an account, or None if it does not exist."""

        async def _unit(db: AsyncSession) -> Optional[CreditBalance]:
            account = await self._repo.get_account(db, account_id=account_id)
            return _balance_of(account) if account else None

        return await self._runner.read("balance", _unit)

    async def account(self, account_id: int) -> Optional[CreditAccountSchema]:
        """Account row including subscription tier and status."""

        async def _unit(db: AsyncSession) -> Optional[CreditAccountSchema]:
            account = await self._repo.get_account(db, account_id=account_id)
            return CreditAccountSchema.model_validate(account) if account else None

        return await self._runner.read("account", _unit)

    async def history(self, account_id: int, limit: int = 10) -> list[CreditTransaction]:
        """Most recent ledger rows, newest first."""
        if limit <= 0:
            raise ValidationError("limit must be positive", field="limit")

        async def _unit(db: AsyncSession) -> list[CreditTransaction]:
            rows = await self._repo.list_transactions(db, account_id=account_id, limit=limit)
            return [CreditTransaction.model_validate(row) for row in rows]

        return await self._runner.read("history", _unit)

    async def reconcile(self, account_id: int) -> Optional[ReconcileReport]:
        """Rebuild every pool from the log and compare with the cached row.

        Returns None if the account does not exist.
        """

        async def _unit(db: AsyncSession) -> Optional[ReconcileReport]:
            account = await self._repo.get_account(db, account_id=account_id)
            if account is None:
                return None
            from_ledger, count = await self._repo.sum_deltas(db, account_id=account_id)
            latest = await self._repo.list_transactions(db, account_id=account_id, limit=1)
            return ReconcileReport(
                account_id=account_id,
                cached=_balance_of(account),
                from_ledger=from_ledger,
                last_balance_after=latest[0].balance_after if latest else None,
                transaction_count=count,
            )

        report = await self._runner.read("reconcile", _unit)
        if report is not None and not report.consistent:
            self._logger.with_context(account_id=account_id).error(
                f"Ledger mismatch: cached={report.cached} ledger={report.from_ledger} "
                f"last_balance_after={report.last_balance_after}"
            )
        return report

    async def lock_in(self, db: AsyncSession, account_id: int) -> Optional[CreditBalance]:
        """Lock the account row for the rest of the caller's transaction.

        Returns its balance, or None if the account does not exist.
        """
        account = await self._repo.get_account(db, account_id=account_id, for_update=True)
        return _balance_of(account) if account else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def ensure_account(self, account_id: int) -> tuple[CreditBalance, bool]:
        """Create the account with the signup grant unless it exists.

        Returns the current balance and whether this call created the
        account. Concurrent registrations collapse into one creation.
        """

        async def _unit(db: AsyncSession) -> tuple[CreditBalance, bool]:
            created = await self._repo.create_account(
                db, account_id=account_id, free_credits=self._signup_credits
            )
            if created and self._signup_credits > 0:
                deltas = PoolDeltas(free=self._signup_credits)
                await self._repo.add_transaction(
                    db,
                    transaction_id=uuid4(),
                    account_id=account_id,
                    type=TransactionType.SIGNUP,
                    deltas=deltas,
                    pool_affected=deltas.first_pool(),
                    balance_after=self._signup_credits,
                    description="Signup bonus",
                )
            account = await self._repo.get_account(db, account_id=account_id)
            return _balance_of(account), created

        balance, created = await self._runner.write("ensure_account", _unit)
        if created:
            self._logger.with_context(account_id=account_id).info(
                f"Created account with {balance.free} free credits"
            )
        return balance, created

    async def debit(
        self, account_id: int, amount: int = 1, meta: Optional[LedgerMeta] = None
    ) -> DebitResult:
        """Deduct ``amount`` in the order free, paid, subscription.

        Insufficient funds change nothing and return
        ``reason="insufficient_credits"``.
        """
        if amount <= 0:
            raise ValidationError("Debit amount must be positive", field="amount")
        meta = meta or _NO_META

        async def _unit(db: AsyncSession) -> DebitResult:
            account = await self._repo.get_account(db, account_id=account_id, for_update=True)
            if account is None:
                return DebitResult(ok=False, remaining=0, reason=REASON_ACCOUNT_NOT_FOUND)
            before = _balance_of(account)
            deltas = plan_debit(before, amount, DEBIT_ORDER)
            if deltas is None:
                return DebitResult(
                    ok=False, remaining=before.total, reason=REASON_INSUFFICIENT_CREDITS
                )
            transaction_id = await self._apply(
                db, "debit", account_id, before, deltas, TransactionType.USAGE, meta
            )
            return DebitResult(
                ok=True, remaining=before.total + deltas.amount, transaction_id=transaction_id
            )

        result = await self._runner.write("debit", _unit)
        log = self._logger.with_context(account_id=account_id)
        if result.ok:
            log.debug(f"Debited {amount}, {result.remaining} remaining")
        else:
            log.info(f"Debit of {amount} refused: {result.reason}")
        return result

    async def credit(
        self,
        account_id: int,
        amount: int,
        pool: CreditPool = CreditPool.PAID,
        meta: Optional[LedgerMeta] = None,
        *,
        transaction_type: Optional[TransactionType] = None,
    ) -> CreditResult:
        """Add ``amount`` (negative to remove) to one pool in its own transaction."""
        return await self._runner.write(
            "credit",
            lambda db: self.credit_in(
                db, account_id, amount, pool, meta, transaction_type=transaction_type
            ),
        )

    async def credit_in(
        self,
        db: AsyncSession,
        account_id: int,
        amount: int,
        pool: CreditPool = CreditPool.PAID,
        meta: Optional[LedgerMeta] = None,
        *,
        transaction_type: Optional[TransactionType] = None,
    ) -> CreditResult:
        """Apply a credit inside a transaction the caller owns.

        With an idempotency key, a key that was already applied changes
        nothing and returns ``replayed=True``.
        """
        if amount == 0:
            raise ValidationError("Credit amount must be non-zero", field="amount")
        meta = meta or _NO_META
        if transaction_type is None:
            transaction_type = TransactionType.GRANT if amount > 0 else TransactionType.REVOKE

        account = await self._repo.get_account(db, account_id=account_id, for_update=True)
        if account is None:
            return CreditResult(ok=False, new_balance=0, reason=REASON_ACCOUNT_NOT_FOUND)
        before = _balance_of(account)

        if meta.idempotency_key is not None:
            existing = await self._repo.get_transaction_by_key(
                db, idempotency_key=meta.idempotency_key
            )
            if existing is not None:
                return self._replayed(account_id, before, meta.idempotency_key, str(existing.id))

        deltas = PoolDeltas.single(pool, amount)
        if not before.apply(deltas).is_valid:
            return CreditResult(
                ok=False, new_balance=before.total, reason=REASON_INSUFFICIENT_CREDITS
            )
        transaction_id = await self._apply(
            db, "credit", account_id, before, deltas, transaction_type, meta
        )
        if transaction_id is None:
            return self._replayed(account_id, before, meta.idempotency_key, None)
        self._logger.with_context(account_id=account_id, pool=pool.value).debug(
            f"Credited {amount} ({transaction_type.value})"
        )
        return CreditResult(
            ok=True, new_balance=before.total + amount, transaction_id=transaction_id
        )

    async def grant(
        self, account_id: int, amount: int, reason: str, granted_by: int
    ) -> CreditResult:
        """Admin grant of free credits."""
        if amount <= 0:
            raise ValidationError("Grant amount must be positive", field="amount")
        result = await self.credit(
            account_id,
            amount,
            CreditPool.FREE,
            LedgerMeta(description=f"Admin grant: {reason}"),
            transaction_type=TransactionType.GRANT,
        )
        self._logger.with_context(account_id=account_id, granted_by=granted_by).info(
            f"Admin grant of {amount} ({reason}): ok={result.ok}"
        )
        return result

    async def revoke(
        self, account_id: int, amount: int, reason: str, revoked_by: int
    ) -> CreditResult:
        """Admin revoke; drains free credits before paid, never subscription."""
        if amount <= 0:
            raise ValidationError("Revoke amount must be positive", field="amount")
        meta = LedgerMeta(description=f"Admin revoke: {reason}")

        async def _unit(db: AsyncSession) -> CreditResult:
            account = await self._repo.get_account(db, account_id=account_id, for_update=True)
            if account is None:
                return CreditResult(ok=False, new_balance=0, reason=REASON_ACCOUNT_NOT_FOUND)
            before = _balance_of(account)
            deltas = plan_debit(before, amount, REVOKE_ORDER)
            if deltas is None:
                return CreditResult(
                    ok=False, new_balance=before.total, reason=REASON_INSUFFICIENT_CREDITS
                )
            transaction_id = await self._apply(
                db, "revoke", account_id, before, deltas, TransactionType.REVOKE, meta
            )
            return CreditResult(
                ok=True, new_balance=before.total + deltas.amount, transaction_id=transaction_id
            )

        result = await self._runner.write("revoke", _unit)
        self._logger.with_context(account_id=account_id, revoked_by=revoked_by).info(
            f"Admin revoke of {amount} ({reason}): ok={result.ok}"
        )
        return result

    async def purchase(
        self,
        account_id: int,
        credits: int,
        charge_id: str,
        pool: CreditPool = CreditPool.PAID,
    ) -> CreditResult:
        """Credit a purchase once per ``charge_id``."""
        return await self._runner.write(
            "purchase", lambda db: self.purchase_in(db, account_id, credits, charge_id, pool)
        )

    async def purchase_in(
        self,
        db: AsyncSession,
        account_id: int,
        credits: int,
        charge_id: str,
        pool: CreditPool = CreditPool.PAID,
    ) -> CreditResult:
        """Purchase credit inside a transaction the caller owns."""
        if credits <= 0:
            raise ValidationError("Purchased credits must be positive", field="credits")
        if not charge_id:
            raise ValidationError("charge_id is required", field="charge_id")
        return await self.credit_in(
            db,
            account_id,
            credits,
            pool,
            LedgerMeta(description=f"Purchase {charge_id}", idempotency_key=charge_id),
            transaction_type=TransactionType.PURCHASE,
        )

    async def set_subscription(
        self,
        account_id: int,
        tier: Optional[str],
        status: SubscriptionStatus,
        credits: int = 0,
        charge_id: Optional[str] = None,
    ) -> CreditResult:
        """Record the subscription and credit its pool in one transaction."""
        return await self._runner.write(
            "set_subscription",
            lambda db: self.set_subscription_in(db, account_id, tier, status, credits, charge_id),
        )

    async def set_subscription_in(
        self,
        db: AsyncSession,
        account_id: int,
        tier: Optional[str],
        status: SubscriptionStatus,
        credits: int = 0,
        charge_id: Optional[str] = None,
    ) -> CreditResult:
        """Subscription update inside a transaction the caller owns.

        A replayed ``charge_id`` leaves tier and status untouched. A charge
        that carries no credits is still recorded as a zero-delta ledger row
        so its replay is recognised.
        """
        if credits < 0:
            raise ValidationError("Subscription credits cannot be negative", field="credits")
        account = await self._repo.get_account(db, account_id=account_id, for_update=True)
        if account is None:
            return CreditResult(ok=False, new_balance=0, reason=REASON_ACCOUNT_NOT_FOUND)

        result = CreditResult(ok=True, new_balance=_balance_of(account).total)
        if credits > 0:
            result = await self.credit_in(
                db,
                account_id,
                credits,
                CreditPool.SUBSCRIPTION,
                LedgerMeta(
                    description=f"Subscription {tier or ''}".strip(),
                    idempotency_key=charge_id,
                ),
                transaction_type=TransactionType.PURCHASE,
            )
            if not result.ok or result.replayed:
                return result
        elif charge_id:
            result = await self._record_charge(
                db, account_id, _balance_of(account), charge_id, tier
            )
            if result.replayed:
                return result

        await self._repo.set_subscription(
            db, account_id=account_id, tier=tier, status=status.value
        )
        self._logger.with_context(account_id=account_id).info(
            f"Subscription set to {tier} ({status.value})"
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _record_charge(
        self,
        db: AsyncSession,
        account_id: int,
        balance: CreditBalance,
        charge_id: str,
        tier: Optional[str],
    ) -> CreditResult:
        """Append a zero-delta purchase row keyed by ``charge_id``."""
        existing = await self._repo.get_transaction_by_key(db, idempotency_key=charge_id)
        if existing is not None:
            return self._replayed(account_id, balance, charge_id, str(existing.id))
        transaction_id = uuid4()
        recorded = await self._repo.add_transaction(
            db,
            transaction_id=transaction_id,
            account_id=account_id,
            type=TransactionType.PURCHASE,
            deltas=PoolDeltas(),
            pool_affected=NO_POOL,
            balance_after=balance.total,
            description=f"Subscription {tier or ''}".strip(),
            idempotency_key=charge_id,
        )
        if not recorded:
            return self._replayed(account_id, balance, charge_id, None)
        return CreditResult(
            ok=True, new_balance=balance.total, transaction_id=str(transaction_id)
        )

    async def _apply(
        self,
        db: AsyncSession,
        operation: str,
        account_id: int,
        before: CreditBalance,
        deltas: PoolDeltas,
        transaction_type: TransactionType,
        meta: LedgerMeta,
    ) -> Optional[str]:
        """Append the ledger row and swap the pools.

        Returns the new transaction id, or None when the idempotency key was
        already taken (nothing is written in that case).
        """
        after = before.apply(deltas)
        transaction_id = uuid4()
        inserted = await self._repo.add_transaction(
            db,
            transaction_id=transaction_id,
            account_id=account_id,
            type=transaction_type,
            deltas=deltas,
            pool_affected=deltas.first_pool(),
            balance_after=after.total,
            description=meta.description,
            idempotency_key=meta.idempotency_key,
        )
        if not inserted:
            return None
        swapped = await self._repo.swap_balance(
            db, account_id=account_id, expected=before, new=after
        )
        if not swapped:
            self._logger.with_context(account_id=account_id).warning(
                f"Compare-and-swap lost during {operation}"
            )
            raise LedgerConflictError(operation, account_id)
        return str(transaction_id)

    def _replayed(
        self,
        account_id: int,
        balance: CreditBalance,
        idempotency_key: Optional[str],
        transaction_id: Optional[str],
    ) -> CreditResult:
        self._logger.with_context(account_id=account_id).info(
            f"Idempotency key {idempotency_key} already applied, skipping"
        )
        return CreditResult(
            ok=True, new_balance=balance.total, replayed=True, transaction_id=transaction_id
        )
