"""CreditLedger against the real repository: pools, idempotency, reconcile."""

import asyncio

import pytest

from tollgate.core.exceptions import LedgerConflictError, StoreUnavailableError
from tollgate.domains.credits.types import (
    REASON_INSUFFICIENT_CREDITS,
    CreditBalance,
    SubscriptionStatus,
)

pytestmark = pytest.mark.integration

ACCOUNT_ID = 9001


class TestDebitOrder:
    @pytest.mark.asyncio
    async def test_free_drained_before_paid(self, container):
        credits = container.credits
        await credits.ensure_account(ACCOUNT_ID)
        await credits.purchase(ACCOUNT_ID, 5, "ch_1")

        result = await credits.debit(ACCOUNT_ID, 7)

        assert result.ok is True
        assert result.remaining == 3
        assert await credits.balance(ACCOUNT_ID) == CreditBalance(free=0, paid=3)
        history = await credits.history(ACCOUNT_ID)
        assert [t.type for t in history] == ["usage", "purchase", "signup"]
        assert history[0].pool_affected == "free"
        assert (history[0].free_delta, history[0].paid_delta) == (-5, -2)
        assert history[0].balance_after == 3

    @pytest.mark.asyncio
    async def test_insufficient_writes_nothing(self, container):
        credits = container.credits
        await credits.ensure_account(ACCOUNT_ID)

        result = await credits.debit(ACCOUNT_ID, 6)

        assert result.ok is False
        assert result.reason == REASON_INSUFFICIENT_CREDITS
        assert result.remaining == 5
        assert len(await credits.history(ACCOUNT_ID)) == 1


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_purchase_replay_credits_once(self, container):
        credits = container.credits
        await credits.ensure_account(ACCOUNT_ID)

        first = await credits.purchase(ACCOUNT_ID, 20, "ch_dup")
        second = await credits.purchase(ACCOUNT_ID, 20, "ch_dup")

        assert first.replayed is False
        assert second.replayed is True
        assert second.transaction_id == first.transaction_id
        assert (await credits.balance(ACCOUNT_ID)).total == 25

    @pytest.mark.asyncio
    async def test_ensure_account_once(self, container):
        credits = container.credits

        _, created = await credits.ensure_account(ACCOUNT_ID)
        balance, created_again = await credits.ensure_account(ACCOUNT_ID)

        assert (created, created_again) == (True, False)
        assert balance.total == 5
        assert len(await credits.history(ACCOUNT_ID)) == 1


class TestSubscription:
    @pytest.mark.asyncio
    async def test_subscription_pool_and_status(self, container):
        credits = container.credits
        await credits.ensure_account(ACCOUNT_ID)

        result = await credits.set_subscription(
            ACCOUNT_ID, "pro", SubscriptionStatus.ACTIVE, credits=30, charge_id="sub_1"
        )

        assert result.ok is True
        assert await credits.balance(ACCOUNT_ID) == CreditBalance(free=5, subscription=30)
        account = await credits.account(ACCOUNT_ID)
        assert (account.subscription_tier, account.subscription_status) == ("pro", "active")


class TestReconcile:
    @pytest.mark.asyncio
    async def test_consistent_after_mixed_operations(self, container):
        credits = container.credits
        await credits.ensure_account(ACCOUNT_ID)
        await credits.grant(ACCOUNT_ID, 3, "support", granted_by=1)
        await credits.purchase(ACCOUNT_ID, 10, "ch_7")
        await credits.debit(ACCOUNT_ID, 9)
        await credits.revoke(ACCOUNT_ID, 2, "abuse", revoked_by=1)

        report = await credits.reconcile(ACCOUNT_ID)

        assert report.consistent is True
        assert report.transaction_count == 5
        assert report.cached == CreditBalance(free=0, paid=7)

    @pytest.mark.asyncio
    async def test_unknown_account(self, container):
        assert await container.credits.reconcile(ACCOUNT_ID) is None
        assert await container.credits.balance(ACCOUNT_ID) is None


class TestConcurrentDebits:
    @pytest.mark.asyncio
    async def test_parallel_debits_never_overspend(self, file_container):
        credits = file_container.credits
        await credits.ensure_account(ACCOUNT_ID)

        outcomes = await asyncio.gather(
            *(credits.debit(ACCOUNT_ID, 1) for _ in range(12)), return_exceptions=True
        )

        # Losers either see insufficient funds or fail safe on contention.
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                assert isinstance(outcome, (LedgerConflictError, StoreUnavailableError))
            elif not outcome.ok:
                assert outcome.reason == REASON_INSUFFICIENT_CREDITS
        spent = sum(1 for o in outcomes if not isinstance(o, BaseException) and o.ok)
        balance = await credits.balance(ACCOUNT_ID)
        assert 1 <= spent <= 5
        assert balance.total == 5 - spent
        assert min(balance.free, balance.paid, balance.subscription) >= 0
        report = await credits.reconcile(ACCOUNT_ID)
        assert report.consistent is True
        assert report.transaction_count == 1 + spent
