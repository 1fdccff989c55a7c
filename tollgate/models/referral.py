"""Referral models: codes, links and milestone achievements."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base, utcnow


class ReferralCode(Base):
    """The stable referral code owned by an account."""

    __tablename__ = "referral_code"

    account_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)


class ReferralLink(Base):
    """Referrer to referred link; an account can be referred at most once."""

    __tablename__ = "referral_link"

    referrer_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    referred_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    referral_code: Mapped[str] = mapped_column(String(32), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    referrer_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referred_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("referrer_id <> referred_id", name="ck_referral_link_not_self"),
    )


class MilestoneAchievement(Base):
    """A referral milestone bonus granted to an account."""

    __tablename__ = "milestone_achievement"

    account_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    milestone_id: Mapped[str] = mapped_column(String(30), nullable=False)
    bonus_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "milestone_id", name="uq_milestone_account"),
    )
