"""Referrals domain: codes, referral bonuses and milestones."""

from tollgate.domains.referrals.ledger import ReferralLedger
from tollgate.domains.referrals.repository import ReferralRepository
from tollgate.domains.referrals.types import (
    DEFAULT_MILESTONES,
    Milestone,
    ReferralResult,
    ReferralStats,
)

__all__ = [
    "DEFAULT_MILESTONES",
    "Milestone",
    "ReferralLedger",
    "ReferralRepository",
    "ReferralResult",
    "ReferralStats",
]
