"""Dependency Injection Container.

The container is an immutable dataclass holding the wired services. It has
no construction logic; that belongs in the factory.

Design principles:
- Container serves, factory builds
- Fail fast: all construction at startup
- Testing: construct directly with fakes
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from tollgate.core.protocols import RateLimiter
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.admission.gate import AdmissionGate
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.payments.processor import PurchaseProcessor
from tollgate.domains.rate_limits.policy import RateLimitPolicy
from tollgate.domains.referrals.ledger import ReferralLedger
from tollgate.domains.trials.registry import TrialRegistry


@dataclass(frozen=True)
class Container:
    """Immutable container holding every service the host application uses.

    Usage:
        # Production: use the global container built by the factory
        from tollgate.core import container as container_module
        decision = await container_module.container.gate.can_proceed(context)

        # Testing: build over an in-memory SQLite session factory
        test_container = create_container(settings, session_factory=factory)
    """

    limiter: RateLimiter
    runner: TransactionRunner
    rate_limits: RateLimitPolicy
    credits: CreditLedger
    trials: TrialRegistry
    referrals: ReferralLedger
    gate: AdmissionGate
    purchases: PurchaseProcessor

    # Only set when the factory built the engine itself
    engine: Optional[AsyncEngine] = None

    async def start(self) -> None:
        """Start background work (the limiter's expiry sweep)."""
        await self.limiter.start()

    async def close(self) -> None:
        """Stop background work and release the connection pool."""
        await self.limiter.close()
        if self.engine is not None:
            await self.engine.dispose()
