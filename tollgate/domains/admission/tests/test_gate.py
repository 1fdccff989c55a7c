"""Unit tests for AdmissionGate: decision order, fail-safe denial and settlement."""

import pytest

from tollgate.core.exceptions import ValidationError
from tollgate.domains.admission.tests.conftest import (
    GROUP_ID,
    USER_ID,
    SlowCreditRepository,
    UnreachableCreditRepository,
    _group,
    _make_gate,
    _private,
)
from tollgate.domains.admission.types import (
    REASON_INSUFFICIENT_CREDITS,
    REASON_MISSING_IDENTITY,
    REASON_RATE_LIMITED,
    REASON_STORE_UNAVAILABLE,
    REASON_TRIAL_ALREADY_USED,
    AdmissionContext,
    ChatType,
    Decision,
)


# ---------------------------------------------------------------------------
# can_proceed
# ---------------------------------------------------------------------------


class TestIdentity:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id, chat_id", [(None, GROUP_ID), (USER_ID, None)])
    async def test_missing_identity_denied(self, user_id, chat_id):
        gate, cr, _, limiter = _make_gate()

        decision = await gate.can_proceed(AdmissionContext(user_id=user_id, chat_id=chat_id))

        assert decision.allow is False
        assert decision.reason == REASON_MISSING_IDENTITY
        assert limiter.hits == []
        assert cr.call_count("get_account") == 0


class TestRateLimits:
    @pytest.mark.asyncio
    async def test_limited_short_circuits_ledger(self):
        gate, cr, _, limiter = _make_gate()
        limiter.limit("user", reset_in=9)

        decision = await gate.can_proceed(_group())

        assert decision.allow is False
        assert decision.reason == REASON_RATE_LIMITED
        assert decision.retry_after == 9
        assert decision.user_message == (
            "You're sending messages too quickly. Please wait 9 seconds."
        )
        assert cr.call_count("get_account") == 0

    @pytest.mark.asyncio
    async def test_command_tier_is_counted(self):
        gate, _, _, limiter = _make_gate()

        await gate.can_proceed(_private(command="/summary"))

        assert ("command", f"{USER_ID}:/summary") in limiter.hits


class TestCredits:
    @pytest.mark.asyncio
    async def test_new_account_created_and_allowed(self):
        gate, cr, _, _ = _make_gate()

        decision = await gate.can_proceed(_private())

        assert decision.allow is True
        assert decision.is_new_account is True
        assert decision.remaining_credits == 5
        assert cr.call_count("create_account") == 1

    @pytest.mark.asyncio
    async def test_existing_balance_allows(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID, paid=3)

        decision = await gate.can_proceed(_group())

        assert decision == Decision(allow=True, remaining_credits=3)

    @pytest.mark.asyncio
    async def test_empty_private_chat_denied(self):
        gate, cr, tr, _ = _make_gate()
        cr.seed(USER_ID)

        decision = await gate.can_proceed(_private())

        assert decision.allow is False
        assert decision.reason == REASON_INSUFFICIENT_CREDITS
        assert decision.show_purchase_options is True
        assert tr.call_count("get") == 0


class TestGroupTrial:
    @pytest.mark.asyncio
    async def test_first_time_in_group_is_trial(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID)

        decision = await gate.can_proceed(_group())

        assert decision.allow is True
        assert decision.is_trial is True

    @pytest.mark.asyncio
    async def test_trial_used_denied(self):
        gate, cr, tr, _ = _make_gate()
        cr.seed(USER_ID)
        tr.seed(USER_ID, GROUP_ID)

        decision = await gate.can_proceed(_group())

        assert decision.allow is False
        assert decision.reason == REASON_TRIAL_ALREADY_USED
        assert decision.show_purchase_options is True

    @pytest.mark.asyncio
    async def test_plain_group_also_offers_trial(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID)
        context = AdmissionContext(user_id=USER_ID, chat_id=GROUP_ID, chat_type=ChatType.GROUP)

        assert (await gate.can_proceed(context)).is_trial is True

    @pytest.mark.asyncio
    async def test_channel_gets_no_trial(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID)
        context = AdmissionContext(user_id=USER_ID, chat_id=GROUP_ID, chat_type=ChatType.CHANNEL)

        decision = await gate.can_proceed(context)

        assert decision.reason == REASON_INSUFFICIENT_CREDITS


class TestStoreUnavailable:
    @pytest.mark.asyncio
    async def test_connection_failure_denies(self):
        gate, *_ = _make_gate(credit_repo=UnreachableCreditRepository())

        decision = await gate.can_proceed(_group())

        assert decision.allow is False
        assert decision.reason == REASON_STORE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_timeout_denies(self):
        gate, *_ = _make_gate(credit_repo=SlowCreditRepository(), timeout=0.05)

        decision = await gate.can_proceed(_group())

        assert decision.allow is False
        assert decision.reason == REASON_STORE_UNAVAILABLE


# ---------------------------------------------------------------------------
# settle
# ---------------------------------------------------------------------------


class TestSettle:
    @pytest.mark.asyncio
    async def test_debit_settlement(self):
        gate, cr, tr, _ = _make_gate()
        cr.seed(USER_ID, free=2)
        decision = await gate.can_proceed(_private())

        result = await gate.settle(decision, _private(), template="pixel")

        assert result.ok is True
        assert result.remaining_credits == 1
        assert tr.call_count("insert") == 0
        assert cr.transactions[-1].description == "Usage: pixel"

    @pytest.mark.asyncio
    async def test_trial_settlement_never_debits(self):
        gate, cr, tr, _ = _make_gate()
        cr.seed(USER_ID)
        decision = await gate.can_proceed(_group())

        result = await gate.settle(decision, _group(), template="pixel")

        assert result.ok is True
        assert result.is_trial is True
        assert cr.call_count("swap_balance") == 0
        assert tr.call_count("insert") == 1

    @pytest.mark.asyncio
    async def test_duplicate_trial_settlement(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID)
        first = await gate.can_proceed(_group())
        second = await gate.can_proceed(_group())
        await gate.settle(first, _group())

        result = await gate.settle(second, _group())

        assert result.ok is False
        assert result.reason == REASON_TRIAL_ALREADY_USED

    @pytest.mark.asyncio
    async def test_balance_spent_between_check_and_settle(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID, free=1)
        decision = await gate.can_proceed(_private())
        await gate.settle(decision, _private())

        result = await gate.settle(decision, _private())

        assert result.ok is False
        assert result.reason == REASON_INSUFFICIENT_CREDITS

    @pytest.mark.asyncio
    async def test_cost_above_one(self):
        gate, cr, _, _ = _make_gate()
        cr.seed(USER_ID, free=2, paid=5)
        decision = await gate.can_proceed(_private())

        result = await gate.settle(decision, _private(), cost=4)

        assert result.remaining_credits == 3

    @pytest.mark.asyncio
    async def test_denied_decision_cannot_be_settled(self):
        gate, *_ = _make_gate()

        with pytest.raises(ValidationError):
            await gate.settle(Decision(allow=False), _private())

    @pytest.mark.asyncio
    async def test_settlement_store_failure(self):
        gate, *_ = _make_gate(credit_repo=UnreachableCreditRepository())

        result = await gate.settle(Decision(allow=True), _private())

        assert result.ok is False
        assert result.reason == REASON_STORE_UNAVAILABLE
