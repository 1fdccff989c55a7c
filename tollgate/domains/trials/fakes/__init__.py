"""Fakes for the trials domain."""

from tollgate.domains.trials.fakes.repository import FakeTrialRepository

__all__ = ["FakeTrialRepository"]
