"""Trial domain types."""

import math
from dataclasses import dataclass
from enum import Enum

REASON_TRIAL_ALREADY_USED = "trial_already_used"


class TrialOutcome(str, Enum):
    """Result of recording a trial."""

    RECORDED = "recorded"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class GroupTrialStats:
    """Trial conversion figures for one group."""

    total_trials: int
    converted_users: int
    conversion_rate: float


def conversion_rate(total: int, converted: int) -> float:
    """Converted share in percent, rounded half up to one decimal."""
    if total <= 0:
        return 0.0
    return math.floor(converted / total * 1000 + 0.5) / 10
