"""Schemas for the application."""

from .credit import CreditAccount, CreditTransaction
from .rate_limit import CombinedRateLimitResult, RateLimitResult, TierConfig, TierStats
from .trial import TrialRecord

__all__ = [
    "CombinedRateLimitResult",
    "CreditAccount",
    "CreditTransaction",
    "RateLimitResult",
    "TierConfig",
    "TierStats",
    "TrialRecord",
]
