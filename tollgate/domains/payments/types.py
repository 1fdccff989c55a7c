"""Payments domain types."""

from enum import Enum


class PurchaseKind(str, Enum):
    """What a confirmed charge bought."""

    PACKAGE = "package"
    SUBSCRIPTION = "subscription"
