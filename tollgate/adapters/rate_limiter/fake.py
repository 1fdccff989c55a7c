"""Fake rate limiter for testing.

Never counts anything on its own; tests decide which tiers are limited.
"""

from typing import Iterable, Optional, Sequence

from tollgate.adapters.rate_limiter.in_memory import DEFAULT_TIERS, _most_restrictive
from tollgate.core.exceptions import ConfigurationError
from tollgate.schemas.rate_limit import (
    CombinedRateLimitResult,
    RateLimitResult,
    TierConfig,
    TierStats,
)


class FakeRateLimiter:
    """Test implementation of RateLimiter.

    Usage:
        fake = FakeRateLimiter(now=1000.0)
        fake.limit("user", reset_in=12)
        result = fake.check_each([("user", "42")])

        assert result.limited
        assert fake.hits == [("user", "42")]
    """

    def __init__(self, now: float = 1_000_000.0, tiers: Optional[dict[str, TierConfig]] = None):
        """Initialize with no limited tiers."""
        self.now = now
        self._tiers = dict(DEFAULT_TIERS if tiers is None else tiers)
        self._limited: dict[str, float] = {}  # tier -> seconds until reset
        self.hits: list[tuple[str, str]] = []
        self.started = False
        self.closed = False

    @property
    def tiers(self) -> dict[str, TierConfig]:
        """Configured tiers by name."""
        return dict(self._tiers)

    def require(self, *tiers: str) -> None:
        """Raise ConfigurationError unless every named tier is configured."""
        missing = [tier for tier in tiers if tier not in self._tiers]
        if missing:
            raise ConfigurationError(f"Unknown rate limit tier(s): {', '.join(missing)}")

    def hit(self, tier: str, identity: str) -> RateLimitResult:
        """Record the hit and report the tier's forced state."""
        self.require(tier)
        self.hits.append((tier, identity))
        config = self._tiers[tier]
        if tier in self._limited:
            return RateLimitResult(
                tier=tier,
                limited=True,
                remaining=0,
                reset_at=self.now + self._limited[tier],
                count=config.max_requests + 1,
            )
        return RateLimitResult(
            tier=tier,
            limited=False,
            remaining=config.max_requests - 1,
            reset_at=self.now + config.window_seconds,
            count=1,
        )

    def check_multiple(self, tiers: Sequence[str], identity: str) -> CombinedRateLimitResult:
        """Hit every tier for one identity."""
        return self.check_each((tier, identity) for tier in tiers)

    def check_each(self, checks: Iterable[tuple[str, str]]) -> CombinedRateLimitResult:
        """Hit each pair and reduce to the most restrictive outcome."""
        return _most_restrictive([self.hit(tier, identity) for tier, identity in checks])

    def status(self, tier: str, identity: str) -> RateLimitResult:
        """Forced state without recording a hit."""
        result = self.hit(tier, identity)
        self.hits.pop()
        return result

    def reset(self, tier: str, identity: str) -> bool:
        """Clear a forced limit on the tier."""
        return self._limited.pop(tier, None) is not None

    def reset_all(self, identity: str) -> int:
        """Clear every forced limit."""
        count = len(self._limited)
        self._limited.clear()
        return count

    def stats(self) -> dict[str, TierStats]:
        """Empty stats for every tier."""
        return {name: TierStats() for name in self._tiers}

    async def start(self) -> None:
        """Mark as started."""
        self.started = True

    async def close(self) -> None:
        """Mark as closed."""
        self.closed = True

    # Test helpers

    def limit(self, tier: str, reset_in: float = 30.0) -> None:
        """Force every hit on ``tier`` to be limited for ``reset_in`` seconds."""
        self.require(tier)
        self._limited[tier] = reset_in

    def hit_count(self, tier: Optional[str] = None) -> int:
        """Number of recorded hits, optionally for one tier."""
        return sum(1 for name, _ in self.hits if tier is None or name == tier)
