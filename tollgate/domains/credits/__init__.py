"""Credits domain: three-pool balances and the transaction ledger."""

from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.credits.repository import CreditRepository
from tollgate.domains.credits.types import (
    CreditBalance,
    CreditPool,
    CreditResult,
    DebitResult,
    LedgerMeta,
    ReconcileReport,
    SubscriptionStatus,
    TransactionType,
)

__all__ = [
    "CreditBalance",
    "CreditLedger",
    "CreditPool",
    "CreditRepository",
    "CreditResult",
    "DebitResult",
    "LedgerMeta",
    "ReconcileReport",
    "SubscriptionStatus",
    "TransactionType",
]
