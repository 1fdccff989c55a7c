"""Referrals domain test fixtures and helpers."""

from itertools import count

from tollgate.db.fakes import make_fake_runner
from tollgate.domains.credits.fakes.repository import FakeCreditRepository
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.referrals.fakes.repository import FakeReferralRepository
from tollgate.domains.referrals.ledger import ReferralLedger

REFERRER_ID = 1001
REFERRED_ID = 2002
REFERRER_CODE = "ABCD2345"


def _sequential_codes(*codes: str):
    """Code factory returning ``codes`` in order, then numbered codes."""
    queue = list(codes)
    numbers = count(1)

    def _factory(length: int) -> str:
        if queue:
            return queue.pop(0)
        return f"GEN{next(numbers):05d}"[:length]

    return _factory


def _make_referrals(
    *,
    referral_repo=None,
    credit_repo=None,
    code_factory=None,
    seed_accounts: bool = True,
    **kwargs,
):
    """Build a ReferralLedger over fakes; seeds the referrer code and both accounts."""
    rr = referral_repo or FakeReferralRepository()
    cr = credit_repo or FakeCreditRepository()
    runner = make_fake_runner()
    credits = CreditLedger(repo=cr, runner=runner)
    if seed_accounts:
        cr.seed(REFERRER_ID, free=5)
        cr.seed(REFERRED_ID, free=5)
        rr.seed_code(REFERRER_ID, REFERRER_CODE)
    ledger = ReferralLedger(
        repo=rr,
        credits=credits,
        runner=runner,
        code_factory=code_factory,
        **kwargs,
    )
    return ledger, rr, cr, credits
