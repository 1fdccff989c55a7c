"""Fake referral repository for testing."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models._base import utcnow
from tollgate.models.referral import MilestoneAchievement, ReferralLink


class FakeReferralRepository:
    """In-memory fake for ReferralRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize empty in-memory stores."""
        self._codes: dict[int, str] = {}  # account_id -> code
        self._links: list[ReferralLink] = []
        self._achievements: list[MilestoneAchievement] = []
        self._calls: list[tuple] = []

    def seed_code(self, account_id: int, code: str) -> None:
        """Give an account a referral code."""
        self._codes[account_id] = code

    def seed_link(self, referrer_id: int, referred_id: int, referrer_bonus: int = 10) -> None:
        """Store a link without paying anything."""
        self._links.append(
            ReferralLink(
                referrer_id=referrer_id,
                referred_id=referred_id,
                referral_code=self._codes.get(referrer_id, "SEEDED"),
                granted_at=utcnow(),
                referrer_bonus=referrer_bonus,
                referred_bonus=10,
            )
        )

    def call_count(self, method: str) -> int:
        """Return the number of times a method was called."""
        return sum(1 for name, *_ in self._calls if name == method)

    @property
    def links(self) -> list[ReferralLink]:
        """Stored links."""
        return list(self._links)

    @property
    def achievements(self) -> list[MilestoneAchievement]:
        """Stored milestone achievements."""
        return list(self._achievements)

    async def get_code(self, db: AsyncSession, *, account_id: int) -> Optional[str]:
        """The account's code."""
        self._calls.append(("get_code", db, account_id))
        return self._codes.get(account_id)

    async def insert_code(self, db: AsyncSession, *, account_id: int, code: str) -> bool:
        """Store a code unless the account has one or the code is taken."""
        self._calls.append(("insert_code", db, account_id, code))
        if account_id in self._codes or code in self._codes.values():
            return False
        self._codes[account_id] = code
        return True

    async def get_account_for_code(self, db: AsyncSession, *, code: str) -> Optional[int]:
        """Owner of a code."""
        self._calls.append(("get_account_for_code", db, code))
        for account_id, stored in self._codes.items():
            if stored == code:
                return account_id
        return None

    async def get_link_for_referred(
        self, db: AsyncSession, *, referred_id: int
    ) -> Optional[ReferralLink]:
        """The link that referred an account."""
        self._calls.append(("get_link_for_referred", db, referred_id))
        return next((link for link in self._links if link.referred_id == referred_id), None)

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
        """Store a link unless the referred account has one."""
        self._calls.append(("insert_link", db, referrer_id, referred_id))
        if any(link.referred_id == referred_id for link in self._links):
            return False
        self._links.append(
            ReferralLink(
                referrer_id=referrer_id,
                referred_id=referred_id,
                referral_code=referral_code,
                granted_at=utcnow(),
                referrer_bonus=referrer_bonus,
                referred_bonus=referred_bonus,
            )
        )
        return True

    async def count_links(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Links made by a referrer."""
        self._calls.append(("count_links", db, referrer_id))
        return sum(1 for link in self._links if link.referrer_id == referrer_id)

    async def sum_referrer_bonus(self, db: AsyncSession, *, referrer_id: int) -> int:
        """Credits earned from links."""
        self._calls.append(("sum_referrer_bonus", db, referrer_id))
        return sum(link.referrer_bonus for link in self._links if link.referrer_id == referrer_id)

    async def list_achievements(
        self, db: AsyncSession, *, account_id: int
    ) -> list[MilestoneAchievement]:
        """Achievements of an account."""
        self._calls.append(("list_achievements", db, account_id))
        return [a for a in self._achievements if a.account_id == account_id]

    async def insert_achievement(
        self, db: AsyncSession, *, account_id: int, milestone_id: str, bonus_credits: int
    ) -> bool:
        """Store an achievement unless already granted."""
        self._calls.append(("insert_achievement", db, account_id, milestone_id))
        if any(
            a.account_id == account_id and a.milestone_id == milestone_id
            for a in self._achievements
        ):
            return False
        self._achievements.append(
            MilestoneAchievement(
                account_id=account_id,
                milestone_id=milestone_id,
                bonus_credits=bonus_credits,
                achieved_at=utcnow(),
            )
        )
        return True
