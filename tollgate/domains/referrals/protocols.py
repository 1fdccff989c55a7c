"""Protocols for the referrals domain."""

from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models.referral import MilestoneAchievement, ReferralLink


@runtime_checkable
class ReferralRepositoryProtocol(Protocol):
    """Data access for referral codes, links and milestones. Never commits."""

    async def get_code(self, db: AsyncSession, *, account_id: int) -> Optional[str]:
        """The account's referral code, if one was granted."""
        ...

    async def insert_code(self, db: AsyncSession, *, account_id: int, code: str) -> bool:
        """Store a code. False if the account already has one or the code is taken."""
        ...

    async def get_account_for_code(self, db: AsyncSession, *, code: str) -> Optional[int]:
        """Owner of a code."""
        ...

    async def get_link_for_referred(
        self, db: AsyncSession, *, referred_id: int
    ) -> Optional[ReferralLink]:
        """The link that referred an account, if any."""
        ...

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
        """Store a link. False if ``referred_id`` was already referred."""
        ...

    async def count_links(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Number of accounts the referrer brought in."""
        ...

    async def sum_referrer_bonus(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Credits the referrer earned from links."""
        ...

    async def list_achievements(
        self, db: AsyncSession, *, account_id: int
    ) -> list[MilestoneAchievement]:
        """Milestones the account has been granted."""
        ...

    async def insert_achievement(
        self, db: AsyncSession, *, account_id: int, milestone_id: str, bonus_credits: int
    ) -> bool:
        """Store an achievement. False if it was already granted."""
        ...
