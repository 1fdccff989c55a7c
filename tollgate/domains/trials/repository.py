"""Trial repository backed by SQLAlchemy."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.db.statements import insert_or_ignore
from tollgate.domains.trials.protocols import TrialRepositoryProtocol
from tollgate.models.trial_record import TrialRecord


class TrialRepository(TrialRepositoryProtocol):
    """Reads and writes trial records; never commits."""

    async def get(self, db: AsyncSession, *, user_id: int, group_id: int) -> Optional[TrialRecord]:
        """Get the record for a (user, group) pair."""
        stmt = select(TrialRecord).where(
            TrialRecord.user_id == user_id, TrialRecord.group_id == group_id
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(
        self, db: AsyncSession, *, user_id: int, group_id: int, template_used: Optional[str]
    ) -> bool:
        """Insert unless the unique (user, group) pair already exists."""
        return await insert_or_ignore(
            db,
            TrialRecord,
            {
                "user_id": user_id,
                "group_id": group_id,
                "template_used": template_used,
                "converted_to_paid": False,
            },
            conflict_columns=["user_id", "group_id"],
        )

    async def mark_converted(
        self, db: AsyncSession, *, user_id: int, group_id: int, converted_at: datetime
    ) -> bool:
        """Flip an unconverted record; converted records keep their timestamp."""
        stmt = (
            update(TrialRecord)
            .where(
                TrialRecord.user_id == user_id,
                TrialRecord.group_id == group_id,
                TrialRecord.converted_to_paid.is_(False),
            )
            .values(converted_to_paid=True, converted_at=converted_at, modified_at=converted_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def mark_all_converted(
        self, db: AsyncSession, *, user_id: int, converted_at: datetime
    ) -> int:
        """Flip every unconverted record of a user."""
        stmt = (
            update(TrialRecord)
            .where(TrialRecord.user_id == user_id, TrialRecord.converted_to_paid.is_(False))
            .values(converted_to_paid=True, converted_at=converted_at, modified_at=converted_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount

    async def count_for_group(self, db: AsyncSession, *, group_id: int) -> tuple[int, int]:
        """Total and converted record counts for a group."""
        stmt = select(
            func.count(TrialRecord.id),
            func.coalesce(func.sum(cast(TrialRecord.converted_to_paid, Integer)), 0),
        ).where(TrialRecord.group_id == group_id)
        total, converted = (await db.execute(stmt)).one()
        return int(total), int(converted)

    async def groups_for_user(self, db: AsyncSession, *, user_id: int) -> list[int]:
        """Group ids in which the user has a trial record, oldest first."""
        stmt = (
            select(TrialRecord.group_id)
            .where(TrialRecord.user_id == user_id)
            .order_by(TrialRecord.used_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
