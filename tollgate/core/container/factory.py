"""Container Factory.

All construction logic lives here. The factory reads settings and builds the
container with environment-appropriate implementations.

Design principles:
- Single place for all wiring decisions
- Fail fast: a bad tier override or milestone table crashes at startup
- Testable: pass a session factory to run against SQLite
"""

from typing import Optional

from tollgate.adapters.rate_limiter.in_memory import NullRateLimiter, TieredLimiter, build_tiers
from tollgate.core.config import Settings
from tollgate.core.container.container import Container
from tollgate.core.logging import logger
from tollgate.core.protocols import RateLimiter
from tollgate.db.session import SessionFactory, build_engine, build_session_factory
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.admission.gate import AdmissionGate
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.credits.repository import CreditRepository
from tollgate.domains.payments.processor import PurchaseProcessor
from tollgate.domains.rate_limits.policy import RateLimitPolicy
from tollgate.domains.referrals.ledger import ReferralLedger
from tollgate.domains.referrals.repository import ReferralRepository
from tollgate.domains.trials.registry import TrialRegistry
from tollgate.domains.trials.repository import TrialRepository


def create_container(
    settings: Settings, session_factory: Optional[SessionFactory] = None
) -> Container:
    """Build the container from settings.

    Args:
        settings: Application settings.
        session_factory: Optional session factory. When omitted an engine is
            built from ``settings`` and owned (and disposed) by the container.

    Returns:
        Fully constructed Container. Call ``start()`` to begin the limiter
        sweep.
    """
    # -----------------------------------------------------------------
    # Store access
    # -----------------------------------------------------------------
    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)

    runner = TransactionRunner(
        session_factory,
        timeout=settings.LEDGER_TIMEOUT_SECONDS,
        read_attempts=settings.STORE_READ_RETRY_ATTEMPTS,
    )

    # -----------------------------------------------------------------
    # Rate limiting (process-local)
    # -----------------------------------------------------------------
    limiter = _create_rate_limiter(settings)
    rate_limits = RateLimitPolicy(limiter)

    # -----------------------------------------------------------------
    # Ledgers
    # -----------------------------------------------------------------
    credits = CreditLedger(
        repo=CreditRepository(), runner=runner, signup_credits=settings.SIGNUP_FREE_CREDITS
    )
    trials = TrialRegistry(repo=TrialRepository(), runner=runner)
    referrals = ReferralLedger(
        repo=ReferralRepository(),
        credits=credits,
        runner=runner,
        referrer_bonus=settings.REFERRAL_REFERRER_BONUS,
        referred_bonus=settings.REFERRAL_REFERRED_BONUS,
        code_length=settings.REFERRAL_CODE_LENGTH,
    )

    # -----------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------
    gate = AdmissionGate(
        rate_limits=rate_limits,
        credits=credits,
        trials=trials,
        signup_credits=settings.SIGNUP_FREE_CREDITS,
    )
    purchases = PurchaseProcessor(credits=credits, trials=trials, runner=runner)

    return Container(
        limiter=limiter,
        runner=runner,
        rate_limits=rate_limits,
        credits=credits,
        trials=trials,
        referrals=referrals,
        gate=gate,
        purchases=purchases,
        engine=engine,
    )


def _create_rate_limiter(settings: Settings) -> RateLimiter:
    """Tiered in-memory limiter, or a no-op one when disabled."""
    if settings.DISABLE_RATE_LIMIT:
        logger.warning("Rate limiting disabled by DISABLE_RATE_LIMIT")
        return NullRateLimiter()
    return TieredLimiter(
        build_tiers(settings.RATE_LIMIT_TIER_OVERRIDES),
        sweep_interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
    )
