"""Credit account and transaction schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreditAccount(BaseModel):
    """Read model of a credit account."""

    account_id: int
    free_credits: int = Field(..., ge=0)
    paid_credits: int = Field(..., ge=0)
    subscription_credits: int = Field(..., ge=0)
    subscription_tier: Optional[str] = None
    subscription_status: Optional[str] = None
    created_at: datetime
    modified_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditTransaction(BaseModel):
    """Read model of one ledger row, as returned by ``history``."""

    id: UUID
    account_id: int
    type: str
    pool_affected: str
    amount: int
    free_delta: int
    paid_delta: int
    subscription_delta: int
    balance_after: int
    description: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
