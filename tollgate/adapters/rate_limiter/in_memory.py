"""In-memory fixed-window rate limiter.

Counters live in a dict per tier with lazy expiry on access plus a periodic
sweep. State is process-local: each replica limits independently.

Each counter guards its dict with a ``threading.Lock`` so that the
increment-then-read of one key is atomic from threads and coroutines alike.
Nothing here awaits, so a hit never yields to the event loop.
"""

from __future__ import annotations

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from tollgate.core.exceptions import ConfigurationError, ValidationError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.schemas.rate_limit import (
    CombinedRateLimitResult,
    RateLimitResult,
    TierConfig,
    TierStats,
)

Clock = Callable[[], float]

DEFAULT_TIERS: dict[str, TierConfig] = {
    "user": TierConfig(max_requests=30, window_seconds=60, key_prefix="user"),
    "chat": TierConfig(max_requests=50, window_seconds=60, key_prefix="chat"),
    "command": TierConfig(max_requests=5, window_seconds=60, key_prefix="cmd"),
    "summary": TierConfig(max_requests=3, window_seconds=300, key_prefix="summary"),
    "global": TierConfig(max_requests=1000, window_seconds=60, key_prefix="global"),
}


def build_tiers(overrides: Optional[Mapping[str, Mapping[str, Any]]] = None) -> dict[str, TierConfig]:
    """Merge partial per-tier overrides onto the default tiers.

    An override for an unknown tier name adds a new tier and must then carry
    every field.

    Raises:
        ConfigurationError: If a merged tier is invalid.
    """
    tiers = dict(DEFAULT_TIERS)
    for name, override in (overrides or {}).items():
        base = tiers[name].model_dump() if name in tiers else {"key_prefix": name}
        base.update(override)
        try:
            tiers[name] = TierConfig(**base)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid rate limit tier '{name}': {e}") from e
    return tiers


@dataclass
class _WindowEntry:
    count: int
    reset_at: float


class WindowCounter:
    """Fixed-window counter for a single tier.

    The first hit after ``reset_at`` has passed starts a new window of
    ``window_seconds``. Every hit increments the count, including hits that
    are already over the limit.
    """

    def __init__(self, name: str, config: TierConfig, clock: Clock = time.time) -> None:
        """Initialize an empty counter for one tier."""
        self.name = name
        self.config = config
        self._clock = clock
        self._entries: dict[str, _WindowEntry] = {}
        self._lock = threading.Lock()

    def _key(self, identity: str) -> str:
        return f"{self.config.key_prefix}:{identity}"

    def _result(self, entry: _WindowEntry) -> RateLimitResult:
        return RateLimitResult(
            tier=self.name,
            limited=entry.count > self.config.max_requests,
            remaining=max(0, self.config.max_requests - entry.count),
            reset_at=entry.reset_at,
            count=entry.count,
        )

    def hit(self, identity: str) -> RateLimitResult:
        """Count one request and return the window state after it."""
        key = self._key(identity)
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None or now > entry.reset_at:
                entry = _WindowEntry(count=0, reset_at=now + self.config.window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return self._result(entry)

    def peek(self, identity: str) -> RateLimitResult:
        """Return the window state without counting a request."""
        key = self._key(identity)
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None or now > entry.reset_at:
                return RateLimitResult(
                    tier=self.name,
                    limited=False,
                    remaining=self.config.max_requests,
                    reset_at=now + self.config.window_seconds,
                    count=0,
                )
            return self._result(entry)

    def reset(self, identity: str) -> bool:
        """Drop the identity's counter. True if it existed."""
        with self._lock:
            return self._entries.pop(self._key(identity), None) is not None

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def stats(self) -> TierStats:
        """Count total, live and expired keys."""
        with self._lock:
            now = self._clock()
            expired = sum(1 for entry in self._entries.values() if now > entry.reset_at)
            total = len(self._entries)
        return TierStats(total_keys=total, active_keys=total - expired, expired_keys=expired)


def _most_restrictive(results: Sequence[RateLimitResult]) -> CombinedRateLimitResult:
    """Limited beats not limited; among equals the smaller ``remaining`` wins.

    Ties keep the earliest checked tier.
    """
    worst: Optional[RateLimitResult] = None
    for result in results:
        if worst is None:
            worst = result
        elif result.limited and not worst.limited:
            worst = result
        elif result.limited == worst.limited and result.remaining < worst.remaining:
            worst = result
    if worst is None:
        raise ValidationError("At least one tier must be checked", field="tiers")
    return CombinedRateLimitResult(
        limited=worst.limited,
        remaining=worst.remaining,
        reset_at=worst.reset_at,
        restrictive_tier=worst.tier,
        results=tuple(results),
    )


class TieredLimiter:
    """In-memory implementation of the RateLimiter protocol.

    Owns one ``WindowCounter`` per configured tier. Build one per process
    (the container does) and pass it explicitly to its users.

    Attributes:
        sweep_interval: Seconds between periodic sweeps of expired entries.
    """

    DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0

    def __init__(
        self,
        tiers: Optional[Mapping[str, TierConfig]] = None,
        clock: Clock = time.time,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        logger: Optional[ContextualLogger] = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            tiers: Tier configuration by name. Defaults to ``DEFAULT_TIERS``.
            clock: Wall-clock source in seconds; injectable for tests.
            sweep_interval: Seconds between periodic sweeps.
            logger: Optional logger; defaults to the package logger.
        """
        configured = dict(DEFAULT_TIERS if tiers is None else tiers)
        if not configured:
            raise ConfigurationError("At least one rate limit tier is required")
        self._counters = {
            name: WindowCounter(name, config, clock) for name, config in configured.items()
        }
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._task: Optional[asyncio.Task[None]] = None
        self._logger = (logger or default_logger).with_prefix("[RateLimiter] ")

    @property
    def tiers(self) -> dict[str, TierConfig]:
        """Configured tiers by name."""
        return {name: counter.config for name, counter in self._counters.items()}

    def require(self, *tiers: str) -> None:
        """Raise ConfigurationError unless every named tier is configured."""
        missing = [tier for tier in tiers if tier not in self._counters]
        if missing:
            raise ConfigurationError(f"Unknown rate limit tier(s): {', '.join(missing)}")

    def _counter(self, tier: str) -> WindowCounter:
        try:
            return self._counters[tier]
        except KeyError:
            raise ConfigurationError(f"Unknown rate limit tier: {tier}") from None

    def hit(self, tier: str, identity: str) -> RateLimitResult:
        """Count one request for ``identity`` in ``tier``."""
        result = self._counter(tier).hit(identity)
        if result.limited and result.count == self._counters[tier].config.max_requests + 1:
            self._logger.with_context(tier=tier, identity=identity).info(
                f"Limit reached ({result.count - 1} requests)"
            )
        return result

    def check_multiple(self, tiers: Sequence[str], identity: str) -> CombinedRateLimitResult:
        """Hit every tier for one identity and return the most restrictive outcome."""
        return self.check_each((tier, identity) for tier in tiers)

    def check_each(self, checks: Iterable[tuple[str, str]]) -> CombinedRateLimitResult:
        """Hit each ``(tier, identity)`` pair and return the most restrictive outcome.

        Every pair is hit even once one is limited, so each tier keeps an
        accurate count.
        """
        checks = list(checks)
        self.require(*(tier for tier, _ in checks))
        return _most_restrictive([self.hit(tier, identity) for tier, identity in checks])

    def status(self, tier: str, identity: str) -> RateLimitResult:
        """Report the current window without counting a request."""
        return self._counter(tier).peek(identity)

    def reset(self, tier: str, identity: str) -> bool:
        """Drop the identity's counter in one tier. True if it existed."""
        return self._counter(tier).reset(identity)

    def reset_all(self, identity: str) -> int:
        """Drop the identity's counters in every tier."""
        return sum(1 for counter in self._counters.values() if counter.reset(identity))

    def stats(self) -> dict[str, TierStats]:
        """Key counts per tier."""
        return {name: counter.stats() for name, counter in self._counters.items()}

    def sweep(self) -> int:
        """Remove expired entries from every tier. Returns how many were removed."""
        removed = sum(counter.sweep() for counter in self._counters.values())
        if removed:
            self._logger.debug(f"Swept {removed} expired entries")
        return removed

    @property
    def running(self) -> bool:
        """True while the periodic sweep task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Create the periodic sweep task. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def close(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()


class NullRateLimiter:
    """RateLimiter that never limits. Used when rate limiting is disabled."""

    def __init__(self, tiers: Optional[Mapping[str, TierConfig]] = None) -> None:
        """Keep the tier table so ``require`` still validates names."""
        self._tiers = dict(DEFAULT_TIERS if tiers is None else tiers)

    @property
    def tiers(self) -> dict[str, TierConfig]:
        """Configured tiers by name."""
        return dict(self._tiers)

    def require(self, *tiers: str) -> None:
        """Raise ConfigurationError unless every named tier is configured."""
        missing = [tier for tier in tiers if tier not in self._tiers]
        if missing:
            raise ConfigurationError(f"Unknown rate limit tier(s): {', '.join(missing)}")

    def hit(self, tier: str, identity: str) -> RateLimitResult:
        """Always allowed."""
        self.require(tier)
        config = self._tiers[tier]
        return RateLimitResult(
            tier=tier,
            limited=False,
            remaining=config.max_requests,
            reset_at=time.time() + config.window_seconds,
            count=0,
        )

    def check_multiple(self, tiers: Sequence[str], identity: str) -> CombinedRateLimitResult:
        """Always allowed."""
        return self.check_each((tier, identity) for tier in tiers)

    def check_each(self, checks: Iterable[tuple[str, str]]) -> CombinedRateLimitResult:
        """Always allowed."""
        return _most_restrictive([self.hit(tier, identity) for tier, identity in checks])

    def status(self, tier: str, identity: str) -> RateLimitResult:
        """Always a fresh window."""
        return self.hit(tier, identity)

    def reset(self, tier: str, identity: str) -> bool:
        """Nothing to reset."""
        self.require(tier)
        return False

    def reset_all(self, identity: str) -> int:
        """Nothing to reset."""
        return 0

    def stats(self) -> dict[str, TierStats]:
        """Empty stats for every tier."""
        return {name: TierStats() for name in self._tiers}

    async def start(self) -> None:
        """No-op."""

    async def close(self) -> None:
        """No-op."""


def retry_after_seconds(reset_at: float, now: float) -> int:
    """Whole seconds until ``reset_at``, at least 1."""
    return max(1, math.ceil(reset_at - now))
