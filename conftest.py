"""Root conftest for pytest configuration and shared fixtures.

This conftest is loaded before both testpaths (tests/ and tollgate/),
making its fixtures available to centralized tests AND colocated domain tests.
"""

import os

import pytest

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables: must be set before any tollgate module import
# Uses setdefault so real env vars (CI) are never overridden.
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")


# ---------------------------------------------------------------------------
# Shared fake fixtures: individual protocol fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_rate_limiter():
    """Fake RateLimiter; tests force tiers into the limited state."""
    from tollgate.adapters.rate_limiter.fake import FakeRateLimiter

    return FakeRateLimiter()


@pytest.fixture
def fake_credit_repo():
    """Fake CreditRepository that records calls."""
    from tollgate.domains.credits.fakes.repository import FakeCreditRepository

    return FakeCreditRepository()


@pytest.fixture
def fake_trial_repo():
    """Fake TrialRepository that records calls."""
    from tollgate.domains.trials.fakes.repository import FakeTrialRepository

    return FakeTrialRepository()


@pytest.fixture
def fake_referral_repo():
    """Fake ReferralRepository that records calls."""
    from tollgate.domains.referrals.fakes.repository import FakeReferralRepository

    return FakeReferralRepository()


@pytest.fixture
def fake_runner():
    """TransactionRunner over a mock session; pairs with the fake repositories."""
    from tollgate.db.fakes import make_fake_runner

    return make_fake_runner()


# ---------------------------------------------------------------------------
# Test container: every repository replaced by a fake
# ---------------------------------------------------------------------------


@pytest.fixture
def test_container(
    fake_rate_limiter,
    fake_credit_repo,
    fake_trial_repo,
    fake_referral_repo,
    fake_runner,
):
    """A Container whose services run against fakes.

    Use this when testing code that receives a Container. Reach the fakes
    through the individual fixtures, which share instances with it.
    """
    from tollgate.core.container import Container
    from tollgate.domains.admission.gate import AdmissionGate
    from tollgate.domains.credits.ledger import CreditLedger
    from tollgate.domains.payments.processor import PurchaseProcessor
    from tollgate.domains.rate_limits.policy import RateLimitPolicy
    from tollgate.domains.referrals.ledger import ReferralLedger
    from tollgate.domains.trials.registry import TrialRegistry

    rate_limits = RateLimitPolicy(fake_rate_limiter, clock=lambda: fake_rate_limiter.now)
    credits = CreditLedger(repo=fake_credit_repo, runner=fake_runner)
    trials = TrialRegistry(repo=fake_trial_repo, runner=fake_runner)
    return Container(
        limiter=fake_rate_limiter,
        runner=fake_runner,
        rate_limits=rate_limits,
        credits=credits,
        trials=trials,
        referrals=ReferralLedger(repo=fake_referral_repo, credits=credits, runner=fake_runner),
        gate=AdmissionGate(rate_limits=rate_limits, credits=credits, trials=trials),
        purchases=PurchaseProcessor(credits=credits, trials=trials, runner=fake_runner),
    )
