"""Payments domain: applies confirmed charges to the credit ledger."""

from tollgate.domains.payments.processor import PurchaseProcessor
from tollgate.domains.payments.types import PurchaseKind

__all__ = ["PurchaseKind", "PurchaseProcessor"]
