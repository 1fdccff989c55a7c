"""Protocols for the trials domain."""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models.trial_record import TrialRecord


@runtime_checkable
class TrialRepositoryProtocol(Protocol):
    """Data access for trial records. Never commits."""

    async def get(self, db: AsyncSession, *, user_id: int, group_id: int) -> Optional[TrialRecord]:
        """Get the record for a (user, group) pair."""
        ...

    async def insert(
        self, db: AsyncSession, *, user_id: int, group_id: int, template_used: Optional[str]
    ) -> bool:
        """Insert a record. False if the pair already has one."""
        ...

    async def mark_converted(
        self, db: AsyncSession, *, user_id: int, group_id: int, converted_at: datetime
    ) -> bool:
        """Flip an unconverted record. False if none was flipped."""
        ...

    async def mark_all_converted(
        self, db: AsyncSession, *, user_id: int, converted_at: datetime
    ) -> int:
        """Flip every unconverted record of a user. Returns how many flipped."""
        ...

    async def count_for_group(self, db: AsyncSession, *, group_id: int) -> tuple[int, int]:
        """Total and converted record counts for a group."""
        ...

    async def groups_for_user(self, db: AsyncSession, *, user_id: int) -> list[int]:
        """Group ids in which the user has a trial record."""
        ...
