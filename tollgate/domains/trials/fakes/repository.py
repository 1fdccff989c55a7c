"""Fake trial repository for testing."""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models._base import utcnow
from tollgate.models.trial_record import TrialRecord


class FakeTrialRepository:
    """In-memory fake for TrialRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._records: dict[tuple[int, int], TrialRecord] = {}
        self._calls: list[tuple] = []

    def seed(
        self,
        user_id: int,
        group_id: int,
        converted: bool = False,
        template_used: Optional[str] = None,
    ) -> TrialRecord:
        """Store a trial record."""
        now = utcnow()
        record = TrialRecord(
            user_id=user_id,
            group_id=group_id,
            template_used=template_used,
            used_at=now,
            converted_to_paid=converted,
            converted_at=now if converted else None,
            created_at=now,
            modified_at=now,
        )
        self._records[(user_id, group_id)] = record
        return record

    def call_count(self, method: str) -> int:
        """Return the number of times a method was called."""
        return sum(1 for name, *_ in self._calls if name == method)

    async def get(self, db: AsyncSession, *, user_id: int, group_id: int) -> Optional[TrialRecord]:
        """Get the record for a pair."""
        self._calls.append(("get", db, user_id, group_id))
        return self._records.get((user_id, group_id))

    async def insert(
        self, db: AsyncSession, *, user_id: int, group_id: int, template_used: Optional[str]
    ) -> bool:
        """Insert unless the pair exists."""
        self._calls.append(("insert", db, user_id, group_id, template_used))
        if (user_id, group_id) in self._records:
            return False
        self.seed(user_id, group_id, template_used=template_used)
        return True

    async def mark_converted(
        self, db: AsyncSession, *, user_id: int, group_id: int, converted_at: datetime
    ) -> bool:
        """Flip an unconverted record."""
        self._calls.append(("mark_converted", db, user_id, group_id))
        record = self._records.get((user_id, group_id))
        if record is None or record.converted_to_paid:
            return False
        record.converted_to_paid = True
        record.converted_at = converted_at
        return True

    async def mark_all_converted(
        self, db: AsyncSession, *, user_id: int, converted_at: datetime
    ) -> int:
        """Flip every unconverted record of a user."""
        self._calls.append(("mark_all_converted", db, user_id))
        flipped = 0
        for (uid, _), record in self._records.items():
            if uid == user_id and not record.converted_to_paid:
                record.converted_to_paid = True
                record.converted_at = converted_at
                flipped += 1
        return flipped

    async def count_for_group(self, db: AsyncSession, *, group_id: int) -> tuple[int, int]:
        """Total and converted counts."""
        self._calls.append(("count_for_group", db, group_id))
        records = [r for (_, gid), r in self._records.items() if gid == group_id]
        return len(records), sum(1 for r in records if r.converted_to_paid)

    async def groups_for_user(self, db: AsyncSession, *, user_id: int) -> list[int]:
        """Group ids in insertion order."""
        self._calls.append(("groups_for_user", db, user_id))
        return [gid for (uid, gid) in self._records if uid == user_id]
