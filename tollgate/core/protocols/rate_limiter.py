"""RateLimiter protocol for per-identity, multi-tier request throttling.

A rate limiter owns a set of named tiers (``user``, ``chat``, ``command``,
...). Each hit increments the identity's counter in the tier's current fixed
window and reports whether the identity is now over the limit.

Hits are synchronous and never perform I/O, so the admission path can call
them before touching the ledger.

Usage:
    result = limiter.check_each([("user", "42"), ("chat", "-100")])
    if result.limited:
        deny(retry_after=result.reset_at - now)
"""

from typing import Iterable, Protocol, Sequence, runtime_checkable

from tollgate.schemas.rate_limit import (
    CombinedRateLimitResult,
    RateLimitResult,
    TierConfig,
    TierStats,
)


@runtime_checkable
class RateLimiter(Protocol):
    """Protocol for tiered fixed-window rate limiters."""

    @property
    def tiers(self) -> dict[str, TierConfig]:
        """Configured tiers by name."""
        ...

    def require(self, *tiers: str) -> None:
        """Raise ConfigurationError unless every named tier is configured."""
        ...

    def hit(self, tier: str, identity: str) -> RateLimitResult:
        """Count one request for ``identity`` in ``tier``."""
        ...

    def check_multiple(self, tiers: Sequence[str], identity: str) -> CombinedRateLimitResult:
        """Hit every tier for one identity and return the most restrictive outcome."""
        ...

    def check_each(self, checks: Iterable[tuple[str, str]]) -> CombinedRateLimitResult:
        """Hit each ``(tier, identity)`` pair and return the most restrictive outcome."""
        ...

    def status(self, tier: str, identity: str) -> RateLimitResult:
        """Report the current window without counting a request."""
        ...

    def reset(self, tier: str, identity: str) -> bool:
        """Drop the identity's counter in one tier. True if it existed."""
        ...

    def reset_all(self, identity: str) -> int:
        """Drop the identity's counters in every tier. Returns how many were dropped."""
        ...

    def stats(self) -> dict[str, TierStats]:
        """Key counts per tier."""
        ...

    async def start(self) -> None:
        """Start periodic reclamation of expired counters."""
        ...

    async def close(self) -> None:
        """Stop periodic reclamation."""
        ...
