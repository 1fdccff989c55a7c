"""Models for the application."""

from ._base import Base
from .credit_account import CreditAccount
from .credit_transaction import CreditTransaction
from .referral import MilestoneAchievement, ReferralCode, ReferralLink
from .trial_record import TrialRecord

__all__ = [
    "Base",
    "CreditAccount",
    "CreditTransaction",
    "MilestoneAchievement",
    "ReferralCode",
    "ReferralLink",
    "TrialRecord",
]
