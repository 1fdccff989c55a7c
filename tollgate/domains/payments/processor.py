"""Purchase processor: the payment-callback entry point.

A confirmed charge is applied at most once, keyed by its charge id. The
credit and the trial conversion share one transaction, so a replayed or
failed charge converts nothing.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.core.exceptions import ValidationError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.db.transactions import TransactionRunner
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.credits.types import CreditResult, SubscriptionStatus
from tollgate.domains.payments.types import PurchaseKind
from tollgate.domains.trials.registry import TrialRegistry


class PurchaseProcessor:
    """Applies package and subscription charges."""

    def __init__(
        self,
        credits: CreditLedger,
        trials: TrialRegistry,
        runner: TransactionRunner,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the processor."""
        self._credits = credits
        self._trials = trials
        self._runner = runner
        self._logger = (logger or default_logger).with_prefix("[PurchaseProcessor] ")

    async def handle(
        self,
        charge_id: str,
        account_id: int,
        credits: int,
        kind: PurchaseKind = PurchaseKind.PACKAGE,
        subscription_tier: Optional[str] = None,
    ) -> CreditResult:
        """Apply one confirmed charge.

        Args:
            charge_id: Payment provider charge id; the idempotency key.
            account_id: Account that paid.
            credits: Credits bought. Must be positive for packages.
            kind: Package (paid pool) or subscription (subscription pool).
            subscription_tier: Required for subscriptions.

        Returns:
            The ledger result. ``replayed=True`` when the charge was already
            applied; nothing changes in that case.

        Raises:
            ValidationError: On a missing charge id, missing subscription tier
                or non-positive package credits.
            StoreUnavailableError: If the store times out. Safe to retry with
                the same charge id.
        """
        if not charge_id:
            raise ValidationError("charge_id is required", field="charge_id")
        if kind is PurchaseKind.SUBSCRIPTION and not subscription_tier:
            raise ValidationError(
                "Subscriptions need a tier", field="subscription_tier"
            )

        log = self._logger.with_context(account_id=account_id, charge_id=charge_id)

        async def _unit(db: AsyncSession) -> CreditResult:
            if kind is PurchaseKind.SUBSCRIPTION:
                result = await self._credits.set_subscription_in(
                    db,
                    account_id,
                    subscription_tier,
                    SubscriptionStatus.ACTIVE,
                    credits=credits,
                    charge_id=charge_id,
                )
            else:
                result = await self._credits.purchase_in(db, account_id, credits, charge_id)
            if result.ok and not result.replayed:
                await self._trials.mark_all_converted_in(db, account_id)
            return result

        result = await self._runner.write("purchase", _unit)
        if not result.ok:
            log.warning(f"Charge not applied: {result.reason}")
        elif result.replayed:
            log.info("Charge already applied")
        else:
            log.info(f"Applied {kind.value} charge for {credits} credits")
        return result
