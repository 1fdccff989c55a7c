"""Trial record model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base, utcnow


class TrialRecord(Base):
    """One free trial consumed by a user in a group."""

    __tablename__ = "trial_record"

    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    template_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    converted_to_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    converted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_trial_user_group"),)
