"""Tests for lib/circuit_breaker.py."""

import asyncio

import pytest

from lib.circuit_breaker import (
    CLOSED,
    HALF_OPEN,
    OPEN,
    CircuitBreaker,
    get_breaker,
    get_breaker_states,
)


async def _ok():
    return "ok"


async def _boom():
    raise RuntimeError("provider down")


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("test-provider", failure_threshold=2, recovery_timeout=30.0, clock=clock)


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_success_passes_through(self, breaker):
        assert await breaker.call(_ok, fallback=lambda: "fallback") == "ok"
        assert breaker.state == CLOSED

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self, breaker):
        assert await breaker.call(_boom, fallback=lambda: "fallback") == "fallback"
        assert breaker.state == CLOSED
        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker):
        await breaker.call(_boom, fallback=lambda: None)
        await breaker.call(_boom, fallback=lambda: None)
        assert breaker.state == OPEN

    @pytest.mark.asyncio
    async def test_open_skips_call(self, breaker):
        await breaker.call(_boom, fallback=lambda: None)
        await breaker.call(_boom, fallback=lambda: None)

        calls = []

        async def tracked():
            calls.append(1)
            return "ok"

        assert await breaker.call(tracked, fallback=lambda: "fallback") == "fallback"
        assert calls == []

    @pytest.mark.asyncio
    async def test_half_open_recovers(self, breaker, clock):
        await breaker.call(_boom, fallback=lambda: None)
        await breaker.call(_boom, fallback=lambda: None)
        clock.advance(31)

        assert breaker.allow_request()
        assert breaker.state == HALF_OPEN
        assert await breaker.call(_ok, fallback=lambda: None) == "ok"
        assert breaker.state == CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        await breaker.call(_boom, fallback=lambda: None)
        await breaker.call(_boom, fallback=lambda: None)
        clock.advance(31)

        await breaker.call(_boom, fallback=lambda: None)
        assert breaker.state == OPEN
        assert not breaker.allow_request()

    @pytest.mark.asyncio
    async def test_call_timeout(self, clock):
        cb = CircuitBreaker("test-slow", call_timeout=0.01, clock=clock)

        async def slow():
            await asyncio.sleep(1)

        assert await cb.call(slow, fallback=lambda: "timed out") == "timed out"
        assert cb.failure_count == 1

    def test_reset(self, breaker):
        breaker.state = OPEN
        breaker.failure_count = 5
        breaker.reset()
        assert breaker.state == CLOSED
        assert breaker.failure_count == 0

    def test_registry(self, breaker):
        assert get_breaker("test-provider") is breaker
        assert get_breaker_states()["test-provider"] == CLOSED
