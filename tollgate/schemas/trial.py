"""Trial record schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TrialRecord(BaseModel):
    """Read model of a trial record."""

    user_id: int
    group_id: int
    template_used: Optional[str] = None
    used_at: datetime
    converted_to_paid: bool = False
    converted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
