"""Credit domain types and the pure debit planner.

Everything here is free of I/O: the ledger service loads an account, asks
``plan_debit`` how to split a deduction across pools, and persists the
result.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence


class CreditPool(str, Enum):
    """The three credit sources of an account."""

    FREE = "free"
    PAID = "paid"
    SUBSCRIPTION = "subscription"


# Fixed consumption priority for usage debits.
DEBIT_ORDER: tuple[CreditPool, ...] = (CreditPool.FREE, CreditPool.PAID, CreditPool.SUBSCRIPTION)

# Admin revokes never touch subscription credits.
REVOKE_ORDER: tuple[CreditPool, ...] = (CreditPool.FREE, CreditPool.PAID)


class TransactionType(str, Enum):
    """Ledger row types."""

    SIGNUP = "signup"
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    GRANT = "grant"
    REVOKE = "revoke"
    REFERRAL_BONUS = "referral_bonus"


class SubscriptionStatus(str, Enum):
    """Lifecycle of a subscription."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


REASON_INSUFFICIENT_CREDITS = "insufficient_credits"
REASON_ACCOUNT_NOT_FOUND = "account_not_found"

# Recorded as pool_affected when a row moves nothing.
NO_POOL = "none"


@dataclass(frozen=True)
class CreditBalance:
    """Snapshot of an account's three pools."""

    free: int = 0
    paid: int = 0
    subscription: int = 0

    @property
    def total(self) -> int:
        """Sum of all pools."""
        return self.free + self.paid + self.subscription

    def get(self, pool: CreditPool) -> int:
        """Credits held in one pool."""
        if pool is CreditPool.FREE:
            return self.free
        if pool is CreditPool.PAID:
            return self.paid
        if pool is CreditPool.SUBSCRIPTION:
            return self.subscription
        raise ValueError(f"Unknown pool: {pool}")

    def apply(self, deltas: "PoolDeltas") -> "CreditBalance":
        """Return the balance after ``deltas``."""
        return CreditBalance(
            free=self.free + deltas.free,
            paid=self.paid + deltas.paid,
            subscription=self.subscription + deltas.subscription,
        )

    @property
    def is_valid(self) -> bool:
        """True when no pool is negative."""
        return self.free >= 0 and self.paid >= 0 and self.subscription >= 0


@dataclass(frozen=True)
class PoolDeltas:
    """Signed per-pool change carried by one ledger row."""

    free: int = 0
    paid: int = 0
    subscription: int = 0

    @property
    def amount(self) -> int:
        """Signed change of the total."""
        return self.free + self.paid + self.subscription

    def get(self, pool: CreditPool) -> int:
        """Delta for one pool."""
        return CreditBalance(self.free, self.paid, self.subscription).get(pool)

    def first_pool(self, order: Sequence[CreditPool] = DEBIT_ORDER) -> str:
        """Name of the first pool in ``order`` that this row touches."""
        for pool in order:
            if self.get(pool) != 0:
                return pool.value
        return NO_POOL

    @classmethod
    def single(cls, pool: CreditPool, amount: int) -> "PoolDeltas":
        """Deltas that move ``amount`` in exactly one pool."""
        if pool is CreditPool.FREE:
            return cls(free=amount)
        if pool is CreditPool.PAID:
            return cls(paid=amount)
        if pool is CreditPool.SUBSCRIPTION:
            return cls(subscription=amount)
        raise ValueError(f"Unknown pool: {pool}")


def plan_debit(
    balance: CreditBalance,
    amount: int,
    order: Sequence[CreditPool] = DEBIT_ORDER,
) -> Optional[PoolDeltas]:
    """Split a deduction of ``amount`` across pools in ``order``.

    Each pool is drained before the next is touched. Returns None when the
    pools in ``order`` cannot cover ``amount``; a partial deduction is never
    planned.

    Example:
        >>> plan_debit(CreditBalance(free=2, paid=5), 4)
        PoolDeltas(free=-2, paid=-2, subscription=0)
    """
    if amount <= 0:
        raise ValueError("Debit amount must be positive")
    if sum(balance.get(pool) for pool in order) < amount:
        return None

    deltas = PoolDeltas()
    outstanding = amount
    for pool in order:
        take = min(balance.get(pool), outstanding)
        if take:
            deltas = replace(deltas, **{pool.value: deltas.get(pool) - take})
            outstanding -= take
        if outstanding == 0:
            break
    return deltas


@dataclass(frozen=True)
class LedgerMeta:
    """Caller-supplied annotations for one ledger row."""

    description: Optional[str] = None
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class DebitResult:
    """Outcome of a debit. ``remaining`` is the total after the call."""

    ok: bool
    remaining: int
    reason: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class CreditResult:
    """Outcome of a credit.

    ``replayed`` is True when an idempotency key had already been applied;
    nothing moved and ``new_balance`` is the current total.
    """

    ok: bool
    new_balance: int
    reason: Optional[str] = None
    replayed: bool = False
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class ReconcileReport:
    """Cached account row compared against the ledger."""

    account_id: int
    cached: CreditBalance
    from_ledger: CreditBalance
    last_balance_after: Optional[int]
    transaction_count: int

    @property
    def consistent(self) -> bool:
        """True when every pool and the last running total agree."""
        if self.cached != self.from_ledger:
            return False
        if self.last_balance_after is None:
            return self.cached.total == 0
        return self.last_balance_after == self.cached.total
