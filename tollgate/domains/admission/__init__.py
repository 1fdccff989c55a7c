"""Admission domain: the allow/deny gate in front of every metered action."""

from tollgate.domains.admission.gate import AdmissionGate
from tollgate.domains.admission.types import (
    AdmissionContext,
    ChatType,
    Decision,
    SettlementResult,
)

__all__ = ["AdmissionContext", "AdmissionGate", "ChatType", "Decision", "SettlementResult"]
