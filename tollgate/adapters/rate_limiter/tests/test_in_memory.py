"""Unit tests for the in-memory tiered limiter: windows, reduction, sweep."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from tollgate.adapters.rate_limiter.in_memory import (
    DEFAULT_TIERS,
    NullRateLimiter,
    TieredLimiter,
    WindowCounter,
    build_tiers,
    retry_after_seconds,
)
from tollgate.core.exceptions import ConfigurationError, ValidationError
from tollgate.schemas.rate_limit import TierConfig


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_limiter(tiers=None, clock=None):
    clock = clock or FakeClock()
    return TieredLimiter(tiers=tiers, clock=clock), clock


# ---------------------------------------------------------------------------
# Fixed window
# ---------------------------------------------------------------------------


class TestWindowCounter:
    def test_first_hit_opens_window(self):
        clock = FakeClock(500.0)
        counter = WindowCounter("command", DEFAULT_TIERS["command"], clock)

        result = counter.hit("42")

        assert result.count == 1
        assert result.remaining == 4
        assert result.limited is False
        assert result.reset_at == 560.0

    def test_command_tier_sixth_hit_is_limited(self):
        limiter, _ = _make_limiter()

        remaining = [limiter.hit("command", "42:/summary").remaining for _ in range(5)]
        sixth = limiter.hit("command", "42:/summary")

        assert remaining == [4, 3, 2, 1, 0]
        assert sixth.limited is True
        assert sixth.remaining == 0

    def test_hits_over_limit_keep_counting(self):
        limiter, _ = _make_limiter()

        for _ in range(8):
            result = limiter.hit("command", "42")

        assert result.count == 8
        assert result.remaining == 0

    def test_window_restarts_after_reset_at(self):
        limiter, clock = _make_limiter()
        for _ in range(6):
            limiter.hit("command", "42")

        clock.advance(60.01)
        result = limiter.hit("command", "42")

        assert result.limited is False
        assert result.count == 1
        assert result.remaining == 4

    def test_hit_exactly_at_reset_at_stays_in_window(self):
        limiter, clock = _make_limiter()
        first = limiter.hit("command", "42")

        clock.now = first.reset_at
        result = limiter.hit("command", "42")

        assert result.count == 2

    def test_window_is_fixed_not_sliding(self):
        limiter, clock = _make_limiter()
        first = limiter.hit("command", "42")

        clock.advance(59)
        result = limiter.hit("command", "42")

        assert result.reset_at == first.reset_at

    def test_identities_are_independent(self):
        limiter, _ = _make_limiter()
        for _ in range(6):
            limiter.hit("command", "1")

        assert limiter.hit("command", "2").limited is False

    def test_tiers_are_independent_for_same_identity(self):
        limiter, _ = _make_limiter()
        for _ in range(6):
            limiter.hit("command", "42")

        assert limiter.hit("user", "42").limited is False


class TestThreadSafety:
    def test_concurrent_hits_are_never_lost(self):
        tiers = {"burst": TierConfig(max_requests=10_000, window_seconds=3600, key_prefix="b")}
        limiter, _ = _make_limiter(tiers=tiers)

        def _hammer(_):
            return [limiter.hit("burst", "42").limited for _ in range(2000)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = [limited for batch in pool.map(_hammer, range(8)) for limited in batch]

        assert limiter.status("burst", "42").count == 16_000
        assert outcomes.count(False) == 10_000
        assert outcomes.count(True) == 6_000


# ---------------------------------------------------------------------------
# check_multiple / check_each
# ---------------------------------------------------------------------------


class TestCheckMultiple:
    def test_limited_beats_unlimited(self):
        tiers = {
            "tight": TierConfig(max_requests=1, window_seconds=60, key_prefix="t"),
            "loose": TierConfig(max_requests=100, window_seconds=60, key_prefix="l"),
        }
        limiter, _ = _make_limiter(tiers)
        limiter.hit("tight", "42")

        result = limiter.check_multiple(["loose", "tight"], "42")

        assert result.limited is True
        assert result.restrictive_tier == "tight"

    def test_smaller_remaining_wins_among_unlimited(self):
        limiter, _ = _make_limiter()

        result = limiter.check_multiple(["user", "command", "global"], "42")

        assert result.limited is False
        assert result.restrictive_tier == "command"
        assert result.remaining == 4

    def test_every_tier_is_hit(self):
        limiter, _ = _make_limiter()

        result = limiter.check_multiple(["user", "chat"], "42")

        assert [r.tier for r in result.results] == ["user", "chat"]
        assert limiter.status("user", "42").count == 1
        assert limiter.status("chat", "42").count == 1

    def test_check_each_uses_per_tier_identity(self):
        limiter, _ = _make_limiter()

        limiter.check_each([("user", "42"), ("chat", "-100"), ("global", "all")])

        assert limiter.status("user", "42").count == 1
        assert limiter.status("chat", "-100").count == 1
        assert limiter.status("chat", "42").count == 0

    def test_unknown_tier_raises(self):
        limiter, _ = _make_limiter()

        with pytest.raises(ConfigurationError):
            limiter.check_multiple(["user", "nope"], "42")

    def test_unknown_tier_hits_nothing(self):
        limiter, _ = _make_limiter()

        with pytest.raises(ConfigurationError):
            limiter.check_each([("user", "42"), ("nope", "42")])

        assert limiter.status("user", "42").count == 0

    def test_empty_check_raises(self):
        limiter, _ = _make_limiter()

        with pytest.raises(ValidationError):
            limiter.check_multiple([], "42")


# ---------------------------------------------------------------------------
# status / reset / stats / sweep
# ---------------------------------------------------------------------------


class TestInspection:
    def test_status_does_not_increment(self):
        limiter, _ = _make_limiter()
        limiter.hit("user", "42")

        limiter.status("user", "42")
        limiter.status("user", "42")

        assert limiter.status("user", "42").count == 1

    def test_status_of_unknown_identity_is_fresh(self):
        limiter, _ = _make_limiter()

        result = limiter.status("user", "42")

        assert result.count == 0
        assert result.remaining == 30

    def test_reset_clears_one_tier(self):
        limiter, _ = _make_limiter()
        limiter.hit("user", "42")
        limiter.hit("chat", "42")

        assert limiter.reset("user", "42") is True
        assert limiter.reset("user", "42") is False
        assert limiter.status("chat", "42").count == 1

    def test_reset_all_clears_every_tier(self):
        limiter, _ = _make_limiter()
        limiter.check_multiple(["user", "chat", "command"], "42")

        assert limiter.reset_all("42") == 3
        assert limiter.status("user", "42").count == 0

    def test_stats_counts_expired_keys(self):
        limiter, clock = _make_limiter()
        limiter.hit("command", "1")
        clock.advance(30)
        limiter.hit("command", "2")
        clock.advance(31)

        stats = limiter.stats()["command"]

        assert stats.total_keys == 2
        assert stats.active_keys == 1
        assert stats.expired_keys == 1

    def test_sweep_removes_only_expired(self):
        limiter, clock = _make_limiter()
        limiter.hit("command", "1")
        clock.advance(30)
        limiter.hit("command", "2")
        clock.advance(31)

        assert limiter.sweep() == 1
        assert limiter.stats()["command"].total_keys == 1


class TestSweepTask:
    @pytest.mark.asyncio
    async def test_start_and_close(self):
        limiter = TieredLimiter(sweep_interval=0.01)

        await limiter.start()
        assert limiter.running is True

        await limiter.close()
        assert limiter.running is False

    @pytest.mark.asyncio
    async def test_periodic_sweep_reclaims_entries(self):
        clock = FakeClock()
        limiter = TieredLimiter(clock=clock, sweep_interval=0.01)
        limiter.hit("command", "42")
        clock.advance(120)

        await limiter.start()
        await asyncio.sleep(0.05)
        await limiter.close()

        assert limiter.stats()["command"].total_keys == 0

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self):
        limiter = TieredLimiter(sweep_interval=10)

        await limiter.start()
        task = limiter._task
        await limiter.start()

        assert limiter._task is task
        await limiter.close()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_require_accepts_known_tiers(self):
        limiter, _ = _make_limiter()
        limiter.require("user", "chat", "command", "summary", "global")

    def test_require_rejects_unknown_tier(self):
        limiter, _ = _make_limiter()

        with pytest.raises(ConfigurationError):
            limiter.require("user", "burst")

    def test_build_tiers_merges_partial_override(self):
        tiers = build_tiers({"user": {"max_requests": 10}})

        assert tiers["user"].max_requests == 10
        assert tiers["user"].window_seconds == 60
        assert tiers["chat"] == DEFAULT_TIERS["chat"]

    def test_build_tiers_adds_new_tier(self):
        tiers = build_tiers({"burst": {"max_requests": 2, "window_seconds": 1}})

        assert tiers["burst"].key_prefix == "burst"

    def test_build_tiers_rejects_invalid_values(self):
        with pytest.raises(ConfigurationError):
            build_tiers({"user": {"max_requests": 0}})

    def test_build_tiers_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError):
            build_tiers({"user": {"max_request": 3}})

    def test_empty_tier_table_rejected(self):
        with pytest.raises(ConfigurationError):
            TieredLimiter(tiers={})


class TestNullRateLimiter:
    def test_never_limits(self):
        limiter = NullRateLimiter()

        for _ in range(50):
            result = limiter.check_multiple(["command"], "42")

        assert result.limited is False

    def test_still_validates_tier_names(self):
        with pytest.raises(ConfigurationError):
            NullRateLimiter().require("burst")


class TestRetryAfter:
    def test_rounds_up(self):
        assert retry_after_seconds(1010.2, 1000.0) == 11

    def test_at_least_one_second(self):
        assert retry_after_seconds(1000.0, 1000.0) == 1
