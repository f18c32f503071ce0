"""In-memory rate limiter and phone blacklist for call initiation.

Fixed-window counters keyed by identifier (``ip:<addr>`` or ``phone:<e164>``).
A key that goes past twice its limit inside one window is hard-blocked for
``block_seconds``, even after the window itself rolls over.

The decision logic lives in ``evaluate()``, a pure function that returns the
decision plus the entry to store. ``RateLimiter`` owns the store and the clock
so tests can build isolated instances and move time by hand.

State is per-process: every worker of a multi-process deployment keeps its own
counters, so the effective limit scales with the worker count. A persistent
backend only has to implement ``RateLimitStore``.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator, Protocol

from loguru import logger

from lib.phone import mask_phone

BLOCKED_REASON = "Temporarily blocked due to excessive requests"
EXCEEDED_REASON = "Rate limit exceeded. Please try again later."

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitEntry:
    count: int
    reset_time: float
    blocked_until: float | None = None

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and self.blocked_until > now

    def is_expired(self, now: float) -> bool:
        return self.reset_time < now


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int = 0
    retry_after: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: float = 15 * 60
    block_seconds: float = 60 * 60
    cleanup_interval_seconds: float = 30 * 60


def _seconds_until(deadline: float, now: float) -> int:
    return max(0, math.ceil(deadline - now))


def evaluate(
    entry: RateLimitEntry | None,
    max_calls: int,
    now: float,
    policy: RateLimitPolicy,
) -> tuple[RateLimitDecision, RateLimitEntry | None]:
    """Decide one request against ``entry``.

    Returns ``(decision, new_entry)``. ``new_entry`` is None when the stored
    entry must be left untouched (active block).
    """
    if entry is not None and entry.is_blocked(now):
        return (
            RateLimitDecision(
                allowed=False,
                count=entry.count,
                retry_after=_seconds_until(entry.blocked_until, now),
                reason=BLOCKED_REASON,
            ),
            None,
        )

    if entry is None or entry.is_expired(now):
        fresh = RateLimitEntry(count=1, reset_time=now + policy.window_seconds)
        return RateLimitDecision(allowed=True, count=1), fresh

    updated = replace(entry, count=entry.count + 1)
    if updated.count <= max_calls:
        return RateLimitDecision(allowed=True, count=updated.count), updated

    if updated.count > max_calls * 2:
        updated = replace(updated, blocked_until=now + policy.block_seconds)

    return (
        RateLimitDecision(
            allowed=False,
            count=updated.count,
            retry_after=_seconds_until(updated.reset_time, now),
            reason=EXCEEDED_REASON,
        ),
        updated,
    )


class RateLimitStore(Protocol):
    def get(self, key: str) -> RateLimitEntry | None: ...

    def set(self, key: str, entry: RateLimitEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def items(self) -> Iterable[tuple[str, RateLimitEntry]]: ...

    def __len__(self) -> int: ...


class InMemoryRateLimitStore:
    """Dict-backed store. Not shared across processes."""

    def __init__(self):
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def items(self) -> list[tuple[str, RateLimitEntry]]:
        # Snapshot so callers may delete while iterating
        return list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)


class RateLimiter:
    """Fixed-window limiter with escalating blocks."""

    def __init__(
        self,
        policy: RateLimitPolicy | None = None,
        store: RateLimitStore | None = None,
        clock: Clock = time.time,
    ):
        self.policy = policy or RateLimitPolicy()
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.clock = clock

    def check(self, identifier: str, max_calls: int) -> RateLimitDecision:
        now = self.clock()
        decision, new_entry = evaluate(self.store.get(identifier), max_calls, now, self.policy)
        if new_entry is not None:
            self.store.set(identifier, new_entry)
            if new_entry.is_blocked(now):
                logger.warning(
                    "Blocking {key} for {secs}s due to excessive requests",
                    key=_loggable(identifier),
                    secs=int(self.policy.block_seconds),
                )
        return decision

    def get_info(self, identifier: str, max_calls: int) -> dict | None:
        """Remaining calls and seconds until the window resets, if tracked."""
        entry = self.store.get(identifier)
        if entry is None:
            return None
        now = self.clock()
        return {
            "remaining": max(0, max_calls - entry.count),
            "reset_in": _seconds_until(entry.reset_time, now),
        }

    def sweep(self) -> int:
        """Drop entries whose window and block have both expired."""
        now = self.clock()
        removed = 0
        for key, entry in self.store.items():
            if entry.is_expired(now) and not entry.is_blocked(now):
                self.store.delete(key)
                removed += 1
        if removed:
            logger.debug("Rate limit sweep removed {n} entries", n=removed)
        return removed

    async def run_cleanup(self) -> None:
        """Sweep forever on the policy interval. Run as an asyncio task."""
        while True:
            await asyncio.sleep(self.policy.cleanup_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error("Rate limit sweep failed: {err}", err=str(e))


class Blacklist:
    """Phone numbers rejected before any rate-limit check."""

    def __init__(self, numbers: Iterable[str] = ()):
        self._numbers: set[str] = set(numbers)

    def __contains__(self, phone: str) -> bool:
        return phone in self._numbers

    def __iter__(self) -> Iterator[str]:
        return iter(self._numbers)

    def __len__(self) -> int:
        return len(self._numbers)

    def add(self, phone: str) -> None:
        self._numbers.add(phone)
        logger.warning("Added {phone} to blacklist", phone=mask_phone(phone))


def _loggable(identifier: str) -> str:
    kind, _, value = identifier.partition(":")
    return f"{kind}:{mask_phone(value)}" if kind == "phone" else identifier
