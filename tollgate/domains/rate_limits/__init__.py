"""Rate limit domain: tier selection and user-facing wait messages."""

from tollgate.domains.rate_limits.policy import RateLimitPolicy
from tollgate.domains.rate_limits.types import RateLimitVerdict

__all__ = ["RateLimitPolicy", "RateLimitVerdict"]
