"""Fakes for the referrals domain."""

from tollgate.domains.referrals.fakes.repository import FakeReferralRepository

__all__ = ["FakeReferralRepository"]
