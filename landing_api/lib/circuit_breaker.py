"""Async circuit breaker for outbound provider calls.

Stops hammering a provider (reCAPTCHA siteverify) that keeps failing. States:
closed (normal), open (skip the call, return the fallback), half_open (let
one call through to probe recovery).
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"

# All breakers by name, for /health
_breakers: dict[str, CircuitBreaker] = {}


class CircuitBreaker:
    """Counts consecutive failures; opens at ``failure_threshold``."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
        call_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.call_timeout = call_timeout
        self.clock = clock
        self.state = CLOSED
        self.failure_count = 0
        self.opened_at = 0.0
        _breakers[name] = self

    def allow_request(self) -> bool:
        if self.state != OPEN:
            return True
        if self.clock() - self.opened_at >= self.recovery_timeout:
            self.state = HALF_OPEN
            logger.info("[CB:{name}] Half-open, probing provider", name=self.name)
            return True
        return False

    def record_success(self) -> None:
        if self.state == HALF_OPEN:
            logger.info("[CB:{name}] Provider recovered, closing", name=self.name)
        self.state = CLOSED
        self.failure_count = 0

    def record_failure(self, err: BaseException) -> None:
        self.failure_count += 1
        if self.state == HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = OPEN
            self.opened_at = self.clock()
            logger.error(
                "[CB:{name}] Opened after {n} failures: {err}",
                name=self.name,
                n=self.failure_count,
                err=repr(err),
            )
        else:
            logger.warning(
                "[CB:{name}] Failure {n}/{t}: {err}",
                name=self.name,
                n=self.failure_count,
                t=self.failure_threshold,
                err=repr(err),
            )

    async def call(
        self,
        func: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Any],
    ) -> Any:
        """Await ``func()``; on failure or while open, return ``fallback()``.

        ``func`` is a zero-argument coroutine factory so nothing is created
        when the breaker is open.
        """
        if not self.allow_request():
            logger.warning("[CB:{name}] Circuit open, using fallback", name=self.name)
            return fallback()

        try:
            if self.call_timeout is None:
                result = await func()
            else:
                result = await asyncio.wait_for(func(), timeout=self.call_timeout)
        except Exception as e:
            self.record_failure(e)
            return fallback()

        self.record_success()
        return result

    def reset(self) -> None:
        self.state = CLOSED
        self.failure_count = 0
        self.opened_at = 0.0


def get_breaker(name: str) -> CircuitBreaker | None:
    return _breakers.get(name)


def get_breaker_states() -> dict[str, str]:
    """Return current state of all registered circuit breakers."""
    return {name: cb.state for name, cb in _breakers.items()}
