"""Referral repository backed by SQLAlchemy."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.db.statements import insert_or_ignore
from tollgate.domains.referrals.protocols import ReferralRepositoryProtocol
from tollgate.models.referral import MilestoneAchievement, ReferralCode, ReferralLink


class ReferralRepository(ReferralRepositoryProtocol):
    """Reads and writes referral rows; never commits."""

    async def get_code(self, db: AsyncSession, *, account_id: int) -> Optional[str]:
        """The account's referral code, if one was granted."""
        stmt = select(ReferralCode.code).where(ReferralCode.account_id == account_id)
        return (await db.execute(stmt)).scalar_one_or_none()

    async def insert_code(self, db: AsyncSession, *, account_id: int, code: str) -> bool:
        """Store a code; either unique constraint turns it into a no-op."""
        return await insert_or_ignore(db, ReferralCode, {"account_id": account_id, "code": code})

    async def get_account_for_code(self, db: AsyncSession, *, code: str) -> Optional[int]:
        """Owner of a code."""
        stmt = select(ReferralCode.account_id).where(ReferralCode.code == code)
        return (await db.execute(stmt)).scalar_one_or_none()

    async def get_link_for_referred(
        self, db: AsyncSession, *, referred_id: int
    ) -> Optional[ReferralLink]:
        """The link that referred an account, if any."""
        stmt = select(ReferralLink).where(ReferralLink.referred_id == referred_id)
        return (await db.execute(stmt)).scalar_one_or_none()

    async def insert_link(
        self,
        db: AsyncSession,
        *,
        referrer_id: int,
        referred_id: int,
        referral_code: str,
        referrer_bonus: int,
        referred_bonus: int,
    ) -> bool:
        """Store a link unless the referred account already has one."""
        return await insert_or_ignore(
            db,
            ReferralLink,
            {
                "referrer_id": referrer_id,
                "referred_id": referred_id,
                "referral_code": referral_code,
                "referrer_bonus": referrer_bonus,
                "referred_bonus": referred_bonus,
            },
            conflict_columns=["referred_id"],
        )

    async def count_links(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Number of accounts the referrer brought in."""
        stmt = select(func.count(ReferralLink.id)).where(ReferralLink.referrer_id == referrer_id)
        return int((await db.execute(stmt)).scalar_one())

    async def sum_referrer_bonus(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Credits the referrer earned from links."""
        stmt = select(func.coalesce(func.sum(ReferralLink.referrer_bonus), 0)).where(
            ReferralLink.referrer_id == referrer_id
        )
        return int((await db.execute(stmt)).scalar_one())

    async def list_achievements(
        self, db: AsyncSession, *, account_id: int
    ) -> list[MilestoneAchievement]:
        """Milestones the account has been granted, oldest first."""
        stmt = (
            select(MilestoneAchievement)
            .where(MilestoneAchievement.account_id == account_id)
            .order_by(MilestoneAchievement.achieved_at)
        )
        return list((await db.execute(stmt)).scalars().all())

    async def insert_achievement(
        self, db: AsyncSession, *, account_id: int, milestone_id: str, bonus_credits: int
    ) -> bool:
        """Store an achievement unless (account, milestone) already exists."""
        return await insert_or_ignore(
            db,
            MilestoneAchievement,
            {"account_id": account_id, "milestone_id": milestone_id, "bonus_credits": bonus_credits},
            conflict_columns=["account_id", "milestone_id"],
        )
