"""Credits domain test fixtures and helpers."""

from tollgate.db.fakes import make_fake_runner
from tollgate.domains.credits.fakes.repository import FakeCreditRepository
from tollgate.domains.credits.ledger import CreditLedger

ACCOUNT_ID = 424242
OTHER_ACCOUNT_ID = 777


def _make_ledger(repo=None, signup_credits: int = 5):
    """Build a CreditLedger wired to the fake repository and a mock session."""
    repo = repo or FakeCreditRepository()
    ledger = CreditLedger(repo=repo, runner=make_fake_runner(), signup_credits=signup_credits)
    return ledger, repo
