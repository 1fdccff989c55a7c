"""ReferralLedger against the real repositories: bonuses and milestones."""

import pytest

from tollgate.domains.referrals.ledger import ReferralLedger
from tollgate.domains.referrals.repository import ReferralRepository
from tollgate.domains.referrals.types import (
    REASON_ALREADY_REFERRED,
    REASON_INVALID_CODE,
    REASON_SELF_REFERRAL,
    Milestone,
)

pytestmark = pytest.mark.integration

REFERRER_ID = 100


async def _referrer(container):
    await container.credits.ensure_account(REFERRER_ID)
    return await container.referrals.grant_code(REFERRER_ID)


async def _refer(container, code, referred_id):
    await container.credits.ensure_account(referred_id)
    return await container.referrals.apply_referral(code, referred_id)


class TestApplyReferral:
    @pytest.mark.asyncio
    async def test_both_sides_paid(self, container):
        code = await _referrer(container)

        result = await _refer(container, f"ref_{code.lower()}", 200)

        assert result.ok is True
        assert result.referrer_id == REFERRER_ID
        assert (await container.credits.balance(REFERRER_ID)).free == 15
        assert (await container.credits.balance(200)).free == 15
        assert (await container.credits.reconcile(REFERRER_ID)).consistent is True

    @pytest.mark.asyncio
    async def test_refusals(self, container):
        code = await _referrer(container)
        await _refer(container, code, 200)

        assert (await _refer(container, code, 200)).reason == REASON_ALREADY_REFERRED
        assert (await _refer(container, code, REFERRER_ID)).reason == REASON_SELF_REFERRAL
        assert (await _refer(container, "ZZZZZZZZ", 300)).reason == REASON_INVALID_CODE
        assert (await container.credits.balance(200)).free == 15

    @pytest.mark.asyncio
    async def test_code_is_stable(self, container):
        code = await _referrer(container)

        assert await container.referrals.grant_code(REFERRER_ID) == code
        assert await container.referrals.resolve(code) == REFERRER_ID


class TestMilestones:
    @pytest.mark.asyncio
    async def test_bronze_granted_once(self, container):
        code = await _referrer(container)

        results = [await _refer(container, code, 1000 + i) for i in range(6)]

        granted = [m.milestone_id for r in results for m in r.milestones]
        assert granted == ["bronze"]
        assert results[4].milestones[0].bonus_credits == 20
        # signup 5 + six referrals at 10 + bronze 20
        assert (await container.credits.balance(REFERRER_ID)).free == 85

        stats = await container.referrals.stats(REFERRER_ID)
        assert stats.total_referrals == 6
        assert stats.milestones_achieved == 1
        assert stats.earned_credits == 80
        assert stats.next_milestone.name == "Silver"
        assert stats.next_milestone.remaining == 4


class _AchievementStoreDown(ReferralRepository):
    async def insert_achievement(self, db, *, account_id, milestone_id, bonus_credits):
        raise RuntimeError("achievement store down")


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failure_after_link_rolls_everything_back(self, container):
        code = await _referrer(container)
        await container.credits.ensure_account(200)
        ledger = ReferralLedger(
            repo=_AchievementStoreDown(),
            credits=container.credits,
            runner=container.runner,
            milestones=(Milestone("first", "First", 1, 5),),
        )

        with pytest.raises(RuntimeError):
            await ledger.apply_referral(code, 200)

        assert (await container.referrals.stats(REFERRER_ID)).total_referrals == 0
        for account_id in (REFERRER_ID, 200):
            assert (await container.credits.balance(account_id)).free == 5
            history = await container.credits.history(account_id, limit=10)
            assert [row.type for row in history] == ["signup"]
            assert (await container.credits.reconcile(account_id)).consistent is True

        # The same referral still goes through once the store recovers.
        assert (await container.referrals.apply_referral(code, 200)).ok is True
