"""Rate limiter adapters."""

from tollgate.adapters.rate_limiter.in_memory import (
    DEFAULT_TIERS,
    NullRateLimiter,
    TieredLimiter,
    WindowCounter,
    build_tiers,
)

__all__ = [
    "DEFAULT_TIERS",
    "NullRateLimiter",
    "TieredLimiter",
    "WindowCounter",
    "build_tiers",
]
