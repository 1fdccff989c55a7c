"""Credit transaction model."""

from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base


class CreditTransaction(Base):
    """Append-only ledger row.

    ``amount`` is the signed change of the total; the per-pool deltas always
    sum to it. ``balance_after`` is the account total right after this row.
    """

    __tablename__ = "credit_transaction"

    account_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    pool_affected: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    free_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )

    __table_args__ = (
        Index("ix_credit_transaction_account_created", "account_id", "created_at"),
    )
