"""Referral ledger: codes, one-time referral bonuses and milestone bonuses."""

from typing import Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.exceptions import ValidationError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.credits.types import (
    REASON_ACCOUNT_NOT_FOUND,
    CreditPool,
    LedgerMeta,
    TransactionType,
)
from tollgate.domains.referrals.exceptions import ReferralCodeExhaustedError
from tollgate.domains.referrals.protocols import ReferralRepositoryProtocol
from tollgate.domains.referrals.types import (
    DEFAULT_MILESTONES,
    REASON_ALREADY_REFERRED,
    REASON_INVALID_CODE,
    REASON_SELF_REFERRAL,
    Milestone,
    ReferralResult,
    ReferralStats,
    generate_code,
    next_milestone,
    normalize_code,
    reached_milestones,
    validate_milestones,
)

_MAX_CODE_ATTEMPTS = 10


class ReferralLedger:
    """Links referred accounts to referrers and pays the bonuses.

    The link, both bonuses and any milestone bonus are written in one store
    transaction, so a referral is either fully applied or not at all.
    """

    def __init__(
        self,
        repo: ReferralRepositoryProtocol,
        credits: CreditLedger,
        runner: TransactionRunner,
        referrer_bonus: int = 10,
        referred_bonus: int = 10,
        milestones: Iterable[Milestone] = DEFAULT_MILESTONES,
        code_length: int = 8,
        code_factory: Optional[Callable[[int], str]] = None,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the referral ledger.

        Args:
            repo: Referral data access.
            credits: Ledger used to pay bonuses inside the referral transaction.
            runner: Opens, bounds and commits store transactions.
            referrer_bonus: Free credits paid to the referrer per referral.
            referred_bonus: Free credits paid to the new account.
            milestones: Milestone table; validated here.
            code_length: Length of generated referral codes.
            code_factory: Code generator taking the length; random by default.
            logger: Optional logger; defaults to the package logger.
        """
        self._repo = repo
        self._credits = credits
        self._runner = runner
        self._referrer_bonus = referrer_bonus
        self._referred_bonus = referred_bonus
        self._milestones = validate_milestones(milestones)
        self._code_length = code_length
        self._code_factory = code_factory or generate_code
        self._logger = (logger or default_logger).with_prefix("[ReferralLedger] ")

    @property
    def milestones(self) -> tuple[Milestone, ...]:
        """Milestone table ordered by threshold."""
        return self._milestones

    async def grant_code(self, account_id: int) -> str:
        """The account's referral code, generated on first request."""

        async def _unit(db: AsyncSession) -> str:
            existing = await self._repo.get_code(db, account_id=account_id)
            if existing:
                return existing
            for _ in range(_MAX_CODE_ATTEMPTS):
                code = self._code_factory(self._code_length)
                if await self._repo.insert_code(db, account_id=account_id, code=code):
                    self._logger.with_context(account_id=account_id).info(
                        f"Granted referral code {code}"
                    )
                    return code
                # Either a concurrent grant for this account won, or the code is taken.
                existing = await self._repo.get_code(db, account_id=account_id)
                if existing:
                    return existing
            raise ReferralCodeExhaustedError(account_id, _MAX_CODE_ATTEMPTS)

        return await self._runner.write("grant_code", _unit)

    async def resolve(self, code: str) -> Optional[int]:
        """Owner of a referral code, or None."""
        normalized = normalize_code(code)
        if not normalized:
            return None

        async def _unit(db: AsyncSession) -> Optional[int]:
            return await self._repo.get_account_for_code(db, code=normalized)

        return await self._runner.read("resolve", _unit)

    async def apply_referral(self, code: str, new_account_id: int) -> ReferralResult:
        """Apply ``code`` for a newly registered account.

        Refusals, checked in order: ``invalid_code``, ``self_referral``,
        ``already_referred``, ``account_not_found``.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError("Referral code is empty", field="code")

        async def _unit(db: AsyncSession) -> ReferralResult:
            referrer_id = await self._repo.get_account_for_code(db, code=normalized)
            if referrer_id is None:
                return ReferralResult(ok=False, reason=REASON_INVALID_CODE)
            if referrer_id == new_account_id:
                return ReferralResult(ok=False, reason=REASON_SELF_REFERRAL, referrer_id=referrer_id)
            if await self._repo.get_link_for_referred(db, referred_id=new_account_id):
                return ReferralResult(
                    ok=False, reason=REASON_ALREADY_REFERRED, referrer_id=referrer_id
                )

            # Lock both accounts in id order; the referrer lock also serializes
            # milestone evaluation for that referrer.
            for account_id in sorted((referrer_id, new_account_id)):
                if await self._credits.lock_in(db, account_id) is None:
                    return ReferralResult(
                        ok=False, reason=REASON_ACCOUNT_NOT_FOUND, referrer_id=referrer_id
                    )

            linked = await self._repo.insert_link(
                db,
                referrer_id=referrer_id,
                referred_id=new_account_id,
                referral_code=normalized,
                referrer_bonus=self._referrer_bonus,
                referred_bonus=self._referred_bonus,
            )
            if not linked:
                return ReferralResult(
                    ok=False, reason=REASON_ALREADY_REFERRED, referrer_id=referrer_id
                )

            await self._pay(db, referrer_id, self._referrer_bonus, f"Referral of {new_account_id}")
            await self._pay(db, new_account_id, self._referred_bonus, f"Referred by {referrer_id}")
            granted = await self._grant_milestones(db, referrer_id)
            return ReferralResult(
                ok=True,
                referrer_bonus=self._referrer_bonus,
                referred_bonus=self._referred_bonus,
                referrer_id=referrer_id,
                milestones=tuple(granted),
            )

        result = await self._runner.write("apply_referral", _unit)
        log = self._logger.with_context(referred_id=new_account_id, referrer_id=result.referrer_id)
        if result.ok:
            log.info(
                f"Referral applied (+{result.referrer_bonus}/+{result.referred_bonus}, "
                f"milestones={[m.milestone_id for m in result.milestones]})"
            )
        else:
            log.info(f"Referral refused: {result.reason}")
        return result

    async def stats(self, account_id: int) -> ReferralStats:
        """Code, referral count, earned credits and the next milestone."""

        async def _unit(db: AsyncSession) -> ReferralStats:
            code = await self._repo.get_code(db, account_id=account_id)
            total = await self._repo.count_links(db, referrer_id=account_id)
            earned = await self._repo.sum_referrer_bonus(db, referrer_id=account_id)
            achievements = await self._repo.list_achievements(db, account_id=account_id)
            return ReferralStats(
                account_id=account_id,
                code=code,
                total_referrals=total,
                earned_credits=earned + sum(a.bonus_credits for a in achievements),
                milestones_achieved=len(achievements),
                next_milestone=next_milestone(
                    self._milestones, (a.milestone_id for a in achievements), total
                ),
            )

        return await self._runner.read("referral_stats", _unit)

    async def _pay(self, db: AsyncSession, account_id: int, amount: int, description: str) -> None:
        if amount <= 0:
            return
        await self._credits.credit_in(
            db,
            account_id,
            amount,
            CreditPool.FREE,
            LedgerMeta(description=description),
            transaction_type=TransactionType.REFERRAL_BONUS,
        )

    async def _grant_milestones(self, db: AsyncSession, referrer_id: int) -> list[Milestone]:
        count = await self._repo.count_links(db, referrer_id=referrer_id)
        achieved = {
            a.milestone_id
            for a in await self._repo.list_achievements(db, account_id=referrer_id)
        }
        granted = []
        for milestone in reached_milestones(self._milestones, count):
            if milestone.milestone_id in achieved:
                continue
            inserted = await self._repo.insert_achievement(
                db,
                account_id=referrer_id,
                milestone_id=milestone.milestone_id,
                bonus_credits=milestone.bonus_credits,
            )
            if not inserted:
                continue
            await self._pay(db, referrer_id, milestone.bonus_credits, f"Milestone {milestone.name}")
            granted.append(milestone)
        return granted
