"""Admission gate: one allow/deny decision per inbound action.

Order of checks: identity, rate limits (in memory, no I/O), then the credit
ledger, then the group trial registry. After the action completes the caller
settles the decision, which charges exactly one of a trial or a debit.
"""

from typing import Optional

from tollgate.core.exceptions import StoreUnavailableError, ValidationError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.domains.admission.types import (
    DEBIT_SETTLED_MESSAGE,
    INSUFFICIENT_CREDITS_MESSAGE,
    MISSING_IDENTITY_MESSAGE,
    REASON_INSUFFICIENT_CREDITS,
    REASON_MISSING_IDENTITY,
    REASON_RATE_LIMITED,
    REASON_STORE_UNAVAILABLE,
    REASON_TRIAL_ALREADY_USED,
    STORE_UNAVAILABLE_MESSAGE,
    TRIAL_OFFER_MESSAGE,
    TRIAL_SETTLED_MESSAGE,
    TRIAL_USED_MESSAGE,
    WELCOME_MESSAGE,
    AdmissionContext,
    Decision,
    SettlementResult,
)
from tollgate.domains.credits.ledger import CreditLedger
from tollgate.domains.credits.types import LedgerMeta
from tollgate.domains.rate_limits.policy import RateLimitPolicy
from tollgate.domains.trials.registry import TrialRegistry
from tollgate.domains.trials.types import TrialOutcome


class AdmissionGate:
    """Composes rate limits, credits and trials into one decision."""

    def __init__(
        self,
        rate_limits: RateLimitPolicy,
        credits: CreditLedger,
        trials: TrialRegistry,
        signup_credits: int = 5,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the gate.

        Args:
            rate_limits: Tier policy checked first on every action.
            credits: Balance source and debit target.
            trials: Group trial registry for accounts with no credits.
            signup_credits: Shown in sign-up prompts.
            logger: Optional logger; defaults to the package logger.
        """
        self._rate_limits = rate_limits
        self._credits = credits
        self._trials = trials
        self._signup_credits = signup_credits
        self._logger = (logger or default_logger).with_prefix("[AdmissionGate] ")

    async def can_proceed(self, context: AdmissionContext) -> Decision:
        """Decide whether the action may proceed and at what cost.

        Never raises for store failures; they deny with
        ``reason="store_unavailable"``.
        """
        if not context.has_identity:
            return Decision(
                allow=False, reason=REASON_MISSING_IDENTITY, user_message=MISSING_IDENTITY_MESSAGE
            )
        user_id, chat_id = context.user_id, context.chat_id

        verdict = self._rate_limits.check(user_id, chat_id, context.command)
        if not verdict.allowed:
            return Decision(
                allow=False,
                reason=REASON_RATE_LIMITED,
                user_message=verdict.reason,
                retry_after=verdict.retry_after,
            )

        log = self._logger.with_context(
            user_id=user_id, chat_id=chat_id, chat_type=context.chat_type.value
        )
        try:
            return await self._decide(context, user_id, chat_id)
        except StoreUnavailableError as e:
            log.error(f"Denying, store unavailable: {e}")
            return Decision(
                allow=False, reason=REASON_STORE_UNAVAILABLE, user_message=STORE_UNAVAILABLE_MESSAGE
            )

    async def _decide(self, context: AdmissionContext, user_id: int, chat_id: int) -> Decision:
        balance = await self._credits.balance(user_id)
        if balance is None:
            balance, created = await self._credits.ensure_account(user_id)
            if created:
                return Decision(
                    allow=True,
                    is_new_account=True,
                    remaining_credits=balance.total,
                    user_message=WELCOME_MESSAGE.format(credits=balance.total),
                )

        if balance.total > 0:
            return Decision(allow=True, remaining_credits=balance.total)

        if context.chat_type.allows_trial:
            if await self._trials.has_trialed(user_id, chat_id):
                return Decision(
                    allow=False,
                    reason=REASON_TRIAL_ALREADY_USED,
                    show_purchase_options=True,
                    remaining_credits=0,
                    user_message=TRIAL_USED_MESSAGE.format(signup_credits=self._signup_credits),
                )
            return Decision(
                allow=True, is_trial=True, remaining_credits=0, user_message=TRIAL_OFFER_MESSAGE
            )

        return Decision(
            allow=False,
            reason=REASON_INSUFFICIENT_CREDITS,
            show_purchase_options=True,
            remaining_credits=0,
            user_message=INSUFFICIENT_CREDITS_MESSAGE,
        )

    async def settle(
        self,
        decision: Decision,
        context: AdmissionContext,
        cost: int = 1,
        template: Optional[str] = None,
    ) -> SettlementResult:
        """Charge for a completed action: record the trial or debit, never both.

        Raises:
            ValidationError: If the decision denied the action or the context
                has no identity.
        """
        if not decision.allow:
            raise ValidationError("Cannot settle a denied decision", field="decision")
        if not context.has_identity:
            raise ValidationError("Cannot settle without user and chat", field="context")
        user_id, chat_id = context.user_id, context.chat_id
        log = self._logger.with_context(user_id=user_id, chat_id=chat_id)

        try:
            if decision.is_trial:
                outcome = await self._trials.record_trial(user_id, chat_id, template)
                if outcome is TrialOutcome.DUPLICATE:
                    log.warning("Trial settled twice; the action was not covered")
                    return SettlementResult(
                        ok=False, is_trial=True, reason=REASON_TRIAL_ALREADY_USED
                    )
                return SettlementResult(
                    ok=True,
                    is_trial=True,
                    remaining_credits=0,
                    user_message=TRIAL_SETTLED_MESSAGE.format(signup_credits=self._signup_credits),
                )

            result = await self._credits.debit(
                user_id, cost, LedgerMeta(description=f"Usage: {template}" if template else None)
            )
        except StoreUnavailableError as e:
            log.error(f"Settlement failed, store unavailable: {e}")
            return SettlementResult(
                ok=False, is_trial=decision.is_trial, reason=REASON_STORE_UNAVAILABLE
            )

        if not result.ok:
            return SettlementResult(
                ok=False, reason=result.reason, remaining_credits=result.remaining
            )
        return SettlementResult(
            ok=True,
            remaining_credits=result.remaining,
            user_message=DEBIT_SETTLED_MESSAGE.format(remaining=result.remaining),
        )
