"""Rate limit policy: which tiers an inbound action is counted against."""

import time
from typing import Callable, Optional

from tollgate.adapters.rate_limiter.in_memory import retry_after_seconds
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.core.protocols import RateLimiter
from tollgate.domains.rate_limits.types import (
    CHAT_TIER,
    COMMAND_TIER,
    GLOBAL_IDENTITY,
    GLOBAL_TIER,
    SUMMARY_TIER,
    USER_TIER,
    RateLimitVerdict,
    command_identity,
    wait_message,
)
from tollgate.schemas.rate_limit import CombinedRateLimitResult


class RateLimitPolicy:
    """Counts an action against the user, chat and global tiers.

    Commands are additionally counted per user and command; summary
    generation has its own tier. Tier names are validated at construction.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        clock: Callable[[], float] = time.time,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Bind the policy to a limiter that defines every tier it uses."""
        limiter.require(USER_TIER, CHAT_TIER, COMMAND_TIER, SUMMARY_TIER, GLOBAL_TIER)
        self._limiter = limiter
        self._clock = clock
        self._logger = (logger or default_logger).with_prefix("[RateLimitPolicy] ")

    def check(self, user_id: int, chat_id: int, command: Optional[str] = None) -> RateLimitVerdict:
        """Count one action and decide whether it may proceed."""
        checks = [
            (USER_TIER, str(user_id)),
            (CHAT_TIER, str(chat_id)),
            (GLOBAL_TIER, GLOBAL_IDENTITY),
        ]
        if command:
            checks.append((COMMAND_TIER, command_identity(user_id, command)))
        return self._verdict(self._limiter.check_each(checks), user_id=user_id, chat_id=chat_id)

    def summary_check(self, user_id: int) -> RateLimitVerdict:
        """Count one summary request for the user."""
        result = self._limiter.check_each([(SUMMARY_TIER, str(user_id))])
        return self._verdict(result, user_id=user_id)

    def _verdict(self, result: CombinedRateLimitResult, **dimensions: int) -> RateLimitVerdict:
        if not result.limited:
            return RateLimitVerdict(allowed=True, restrictive_tier=result.restrictive_tier)

        retry_after = retry_after_seconds(result.reset_at, self._clock())
        self._logger.with_context(tier=result.restrictive_tier, **dimensions).info(
            f"Rate limited, retry after {retry_after}s"
        )
        return RateLimitVerdict(
            allowed=False,
            reason=wait_message(result.restrictive_tier, retry_after),
            restrictive_tier=result.restrictive_tier,
            retry_after=retry_after,
        )
