"""Trials domain: one free use per user per group."""

from tollgate.domains.trials.registry import TrialRegistry
from tollgate.domains.trials.repository import TrialRepository
from tollgate.domains.trials.types import GroupTrialStats, TrialOutcome

__all__ = ["GroupTrialStats", "TrialOutcome", "TrialRegistry", "TrialRepository"]
