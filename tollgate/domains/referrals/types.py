"""Referral domain types, milestone table and code generation."""

import secrets
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from tollgate.core.exceptions import ConfigurationError

REASON_INVALID_CODE = "invalid_code"
REASON_SELF_REFERRAL = "self_referral"
REASON_ALREADY_REFERRED = "already_referred"

# No 0/O or 1/I/L, so codes survive being read aloud or retyped.
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

# Prefix used in chat deep links, e.g. ``/start ref_ABCD2345``.
DEEP_LINK_PREFIX = "ref_"


@dataclass(frozen=True)
class Milestone:
    """A referral-count threshold that grants a one-time bonus."""

    milestone_id: str
    name: str
    required_referrals: int
    bonus_credits: int


DEFAULT_MILESTONES: tuple[Milestone, ...] = (
    Milestone("bronze", "Bronze", 5, 20),
    Milestone("silver", "Silver", 10, 50),
    Milestone("gold", "Gold", 25, 150),
    Milestone("platinum", "Platinum", 50, 500),
)


def validate_milestones(milestones: Iterable[Milestone]) -> tuple[Milestone, ...]:
    """Return the milestones ordered by threshold.

    Raises:
        ConfigurationError: On duplicate ids or non-positive values.
    """
    ordered = tuple(sorted(milestones, key=lambda m: m.required_referrals))
    ids = [m.milestone_id for m in ordered]
    if len(set(ids)) != len(ids):
        raise ConfigurationError(f"Duplicate milestone ids: {ids}")
    for milestone in ordered:
        if milestone.required_referrals <= 0 or milestone.bonus_credits <= 0:
            raise ConfigurationError(f"Invalid milestone: {milestone}")
    return ordered


def reached_milestones(milestones: Sequence[Milestone], referral_count: int) -> list[Milestone]:
    """Milestones whose threshold ``referral_count`` meets."""
    return [m for m in milestones if referral_count >= m.required_referrals]


@dataclass(frozen=True)
class NextMilestone:
    """The closest milestone not reached yet."""

    name: str
    required: int
    remaining: int
    bonus: int


def next_milestone(
    milestones: Sequence[Milestone], achieved_ids: Iterable[str], referral_count: int
) -> Optional[NextMilestone]:
    """The first unachieved milestone above ``referral_count``."""
    achieved = set(achieved_ids)
    for milestone in milestones:
        if milestone.milestone_id in achieved:
            continue
        if milestone.required_referrals > referral_count:
            return NextMilestone(
                name=milestone.name,
                required=milestone.required_referrals,
                remaining=milestone.required_referrals - referral_count,
                bonus=milestone.bonus_credits,
            )
    return None


def generate_code(length: int = 8) -> str:
    """Random code drawn from ``CODE_ALPHABET``."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str) -> str:
    """Upper-case, trimmed code with any deep-link prefix removed."""
    code = code.strip()
    if code.lower().startswith(DEEP_LINK_PREFIX):
        code = code[len(DEEP_LINK_PREFIX) :]
    return code.upper()


@dataclass(frozen=True)
class ReferralResult:
    """Outcome of applying a referral code."""

    ok: bool
    referrer_bonus: int = 0
    referred_bonus: int = 0
    reason: Optional[str] = None
    referrer_id: Optional[int] = None
    milestones: tuple[Milestone, ...] = ()


@dataclass(frozen=True)
class ReferralStats:
    """Referral figures for one account."""

    account_id: int
    code: Optional[str]
    total_referrals: int
    earned_credits: int
    milestones_achieved: int
    next_milestone: Optional[NextMilestone] = None
