"""Credit account model."""

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base


class CreditAccount(Base):
    """Cached three-pool balance for one chat user.

    Mutated only through the credit ledger; every change is mirrored by a
    ``CreditTransaction`` row.
    """

    __tablename__ = "credit_account"

    account_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    free_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_tier: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    subscription_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    __table_args__ = (
        CheckConstraint("free_credits >= 0", name="ck_credit_account_free_non_negative"),
        CheckConstraint("paid_credits >= 0", name="ck_credit_account_paid_non_negative"),
        CheckConstraint(
            "subscription_credits >= 0", name="ck_credit_account_subscription_non_negative"
        ),
    )

    @property
    def total_credits(self) -> int:
        """Sum of all three pools."""
        return self.free_credits + self.paid_credits + self.subscription_credits
