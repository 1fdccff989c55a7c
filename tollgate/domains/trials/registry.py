"""Trial registry: at most one free trial per user per group."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.trials.protocols import TrialRepositoryProtocol
from tollgate.domains.trials.types import GroupTrialStats, TrialOutcome, conversion_rate
from tollgate.models._base import utcnow
from tollgate.schemas.trial import TrialRecord


class TrialRegistry:
    """Records group trials and their conversion to paid.

    Recording never moves credits. A second record for the same pair is an
    ordinary ``TrialOutcome.DUPLICATE``, not an error.
    """

    def __init__(
        self,
        repo: TrialRepositoryProtocol,
        runner: TransactionRunner,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the registry."""
        self._repo = repo
        self._runner = runner
        self._logger = (logger or default_logger).with_prefix("[TrialRegistry] ")

    async def has_trialed(self, user_id: int, group_id: int) -> bool:
        """True if the user already used the trial in the group."""

        async def _unit(db: AsyncSession) -> bool:
            return await self._repo.get(db, user_id=user_id, group_id=group_id) is not None

        return await self._runner.read("has_trialed", _unit)

    async def get_trial(self, user_id: int, group_id: int) -> Optional[TrialRecord]:
        """The trial record for a pair, if any."""

        async def _unit(db: AsyncSession) -> Optional[TrialRecord]:
            record = await self._repo.get(db, user_id=user_id, group_id=group_id)
            return TrialRecord.model_validate(record) if record else None

        return await self._runner.read("get_trial", _unit)

    async def record_trial(
        self, user_id: int, group_id: int, template: Optional[str] = None
    ) -> TrialOutcome:
        """Record the user's trial in the group exactly once."""

        async def _unit(db: AsyncSession) -> bool:
            return await self._repo.insert(
                db, user_id=user_id, group_id=group_id, template_used=template
            )

        inserted = await self._runner.write("record_trial", _unit)
        log = self._logger.with_context(user_id=user_id, group_id=group_id)
        if inserted:
            log.info(f"Recorded trial (template={template})")
            return TrialOutcome.RECORDED
        log.info("Trial already recorded")
        return TrialOutcome.DUPLICATE

    async def mark_converted(self, user_id: int, group_id: int) -> bool:
        """Mark one trial converted. False if absent or already converted."""

        async def _unit(db: AsyncSession) -> bool:
            return await self._repo.mark_converted(
                db, user_id=user_id, group_id=group_id, converted_at=utcnow()
            )

        flipped = await self._runner.write("mark_converted", _unit)
        if flipped:
            self._logger.with_context(user_id=user_id, group_id=group_id).info(
                "Trial converted to paid"
            )
        return flipped

    async def mark_all_converted(self, user_id: int) -> int:
        """Mark every trial of the user converted."""
        return await self._runner.write(
            "mark_all_converted", lambda db: self.mark_all_converted_in(db, user_id)
        )

    async def mark_all_converted_in(self, db: AsyncSession, user_id: int) -> int:
        """Mark every trial of the user converted inside the caller's transaction."""
        flipped = await self._repo.mark_all_converted(db, user_id=user_id, converted_at=utcnow())
        if flipped:
            self._logger.with_context(user_id=user_id).info(f"{flipped} trial(s) converted to paid")
        return flipped

    async def group_stats(self, group_id: int) -> GroupTrialStats:
        """Trial count, converted count and conversion percentage for a group."""

        async def _unit(db: AsyncSession) -> tuple[int, int]:
            return await self._repo.count_for_group(db, group_id=group_id)

        total, converted = await self._runner.read("group_stats", _unit)
        return GroupTrialStats(
            total_trials=total,
            converted_users=converted,
            conversion_rate=conversion_rate(total, converted),
        )

    async def user_trial_groups(self, user_id: int) -> list[int]:
        """Groups in which the user has used a trial."""

        async def _unit(db: AsyncSession) -> list[int]:
            return await self._repo.groups_for_user(db, user_id=user_id)

        return await self._runner.read("user_trial_groups", _unit)
