"""Rate limit schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TierConfig(BaseModel):
    """Configuration of one rate-limit tier.

    A tier allows ``max_requests`` hits per fixed window of
    ``window_seconds``; the ``key_prefix`` namespaces its counter keys.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_requests: int = Field(..., gt=0, description="Hits allowed per window")
    window_seconds: float = Field(..., gt=0, description="Window length in seconds")
    key_prefix: str = Field(..., min_length=1, description="Counter key namespace")


class RateLimitResult(BaseModel):
    """Outcome of one hit against one tier."""

    model_config = ConfigDict(frozen=True)

    tier: str
    limited: bool
    remaining: int
    reset_at: float
    count: int


class CombinedRateLimitResult(BaseModel):
    """Most restrictive outcome across several tiers.

    ``restrictive_tier`` names the tier that decided the outcome; ``results``
    keeps every individual result in the order the tiers were checked.
    """

    model_config = ConfigDict(frozen=True)

    limited: bool
    remaining: int
    reset_at: float
    restrictive_tier: Optional[str] = None
    results: tuple[RateLimitResult, ...] = ()


class TierStats(BaseModel):
    """Key counts for one tier's counter."""

    total_keys: int = 0
    active_keys: int = 0
    expired_keys: int = 0
