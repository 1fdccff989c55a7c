"""Admission domain test fixtures and helpers."""

import asyncio

from sqlalchemy.exc import OperationalError

from tollgate.adapters.rate_limiter.fake import FakeRateLimiter
from tollgate.db.fakes import make_fake_runner
from tollgate.domains.admission.gate import AdmissionGate
from tollgate.domains.admission.types import AdmissionContext, ChatType
from tollgate.domains.credits.fakes.repository import FakeCreditRepository
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.rate_limits.policy import RateLimitPolicy
from tollgate.domains.trials.fakes.repository import FakeTrialRepository
from tollgate.domains.trials.registry import TrialRegistry

USER_ID = 42
GROUP_ID = -100123
NOW = 1_000_000.0


class UnreachableCreditRepository(FakeCreditRepository):
    """Every account lookup fails like a dropped connection."""

    async def get_account(self, db, *, account_id, for_update=False):
        raise OperationalError("SELECT credit_account", {}, ConnectionResetError("reset"))


class SlowCreditRepository(FakeCreditRepository):
    """Every account lookup hangs past the runner timeout."""

    async def get_account(self, db, *, account_id, for_update=False):
        await asyncio.sleep(5)
        return await super().get_account(db, account_id=account_id, for_update=for_update)


def _group(user_id=USER_ID, chat_id=GROUP_ID, command=None) -> AdmissionContext:
    return AdmissionContext(
        user_id=user_id, chat_id=chat_id, chat_type=ChatType.SUPERGROUP, command=command
    )


def _private(user_id=USER_ID, command=None) -> AdmissionContext:
    return AdmissionContext(
        user_id=user_id, chat_id=user_id, chat_type=ChatType.PRIVATE, command=command
    )


def _make_gate(*, credit_repo=None, trial_repo=None, limiter=None, timeout: float = 1.0):
    """Build an AdmissionGate over fakes. Returns the gate and its collaborators."""
    cr = credit_repo or FakeCreditRepository()
    tr = trial_repo or FakeTrialRepository()
    lim = limiter or FakeRateLimiter(now=NOW)
    runner = make_fake_runner(timeout=timeout)
    credits = CreditLedger(repo=cr, runner=runner)
    trials = TrialRegistry(repo=tr, runner=runner)
    gate = AdmissionGate(
        rate_limits=RateLimitPolicy(lim, clock=lambda: NOW),
        credits=credits,
        trials=trials,
    )
    return gate, cr, tr, lim
