"""Core protocols for dependency injection.

Domain-specific protocols (repositories) live in their respective domains/
directories. This module keeps cross-cutting infrastructure protocols only.
"""

from tollgate.core.protocols.rate_limiter import RateLimiter

__all__ = [
    "RateLimiter",
]
