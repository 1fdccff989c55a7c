"""Rate limit domain types and wait-message rendering."""

import math
from dataclasses import dataclass
from typing import Optional

USER_TIER = "user"
CHAT_TIER = "chat"
COMMAND_TIER = "command"
SUMMARY_TIER = "summary"
GLOBAL_TIER = "global"

GLOBAL_IDENTITY = "all"

REASON_RATE_LIMITED = "rate_limited"

_TIER_MESSAGES = {
    USER_TIER: "You're sending messages too quickly. Please wait {seconds} seconds.",
    CHAT_TIER: "This chat is too active. Please wait {seconds} seconds.",
    COMMAND_TIER: "You're using commands too frequently. Please wait {seconds} seconds.",
    SUMMARY_TIER: "Summary generation is limited. Please wait {minutes} minutes.",
    GLOBAL_TIER: "The bot is currently busy. Please wait {seconds} seconds.",
}
_DEFAULT_MESSAGE = "Rate limit exceeded. Please wait {seconds} seconds."


def wait_message(tier: Optional[str], retry_after: int) -> str:
    """Render the user-facing wait message for a limited tier."""
    template = _TIER_MESSAGES.get(tier or "", _DEFAULT_MESSAGE)
    return template.format(seconds=retry_after, minutes=max(1, math.ceil(retry_after / 60)))


def command_identity(user_id: int, command: str) -> str:
    """Counter identity for per-user, per-command throttling."""
    return f"{user_id}:{command}"


@dataclass(frozen=True)
class RateLimitVerdict:
    """Outcome of a rate-limit check for one inbound action."""

    allowed: bool
    reason: Optional[str] = None
    restrictive_tier: Optional[str] = None
    retry_after: Optional[int] = None
