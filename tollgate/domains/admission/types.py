"""Admission domain types and user-facing copy."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tollgate.domains.credits.types import (  # noqa: F401
    REASON_ACCOUNT_NOT_FOUND,
    REASON_INSUFFICIENT_CREDITS,
)
from tollgate.domains.rate_limits.types import REASON_RATE_LIMITED  # noqa: F401
from tollgate.domains.trials.types import REASON_TRIAL_ALREADY_USED  # noqa: F401

REASON_MISSING_IDENTITY = "missing_identity"
REASON_STORE_UNAVAILABLE = "store_unavailable"

MISSING_IDENTITY_MESSAGE = "We couldn't identify you. Please try again."
WELCOME_MESSAGE = "Welcome! You received {credits} free credits."
TRIAL_OFFER_MESSAGE = "Your first try in this group is free!"
TRIAL_USED_MESSAGE = (
    "The free trial can be used only once per group.\n\n"
    "Sign up in a private chat to get {signup_credits} free credits right away."
)
INSUFFICIENT_CREDITS_MESSAGE = "You're out of credits!\n\nTop up to keep going."
STORE_UNAVAILABLE_MESSAGE = "Something went wrong on our side. Please try again in a moment."
TRIAL_SETTLED_MESSAGE = (
    "Done! You've used your free trial.\n\n"
    "Sign up in a private chat to get {signup_credits} free credits right away."
)
DEBIT_SETTLED_MESSAGE = "Done! {remaining} credits left."


class ChatType(str, Enum):
    """Kind of chat an action arrives from."""

    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"

    @property
    def allows_trial(self) -> bool:
        """Group trials apply to groups and supergroups only."""
        return self in (ChatType.GROUP, ChatType.SUPERGROUP)


@dataclass(frozen=True)
class AdmissionContext:
    """Identity triple of an inbound action, plus the command if any."""

    user_id: Optional[int]
    chat_id: Optional[int]
    chat_type: ChatType = ChatType.PRIVATE
    command: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        """True when both user and chat are known."""
        return self.user_id is not None and self.chat_id is not None


@dataclass(frozen=True)
class Decision:
    """Allow/deny verdict for one action plus what to show the user."""

    allow: bool
    is_trial: bool = False
    user_message: Optional[str] = None
    show_purchase_options: bool = False
    reason: Optional[str] = None
    retry_after: Optional[int] = None
    is_new_account: bool = False
    remaining_credits: Optional[int] = None


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of charging for an allowed action after it completed."""

    ok: bool
    is_trial: bool = False
    reason: Optional[str] = None
    remaining_credits: Optional[int] = None
    user_message: Optional[str] = None
