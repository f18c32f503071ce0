"""Shared test fixtures for the landing page API tests."""

import os
from dataclasses import replace
from unittest.mock import AsyncMock, patch

import pytest

# Quieter logs for the test run
os.environ.setdefault("LOG_LEVEL", "WARNING")

from config import Settings
from lib.circuit_breaker import CircuitBreaker
from lib.rate_limiter import Blacklist, RateLimiter, RateLimitPolicy
from services.call_guard import CallGuard


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced time source (seconds since epoch)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    @property
    def now_ms(self) -> float:
        return self.now * 1000


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Settings / guard factories
# ---------------------------------------------------------------------------

BASE_SETTINGS = Settings(
    vapi_private_key="vapi-test-key",
    vapi_assistant_id="asst-test-001",
    vapi_phone_number_id="pn-test-001",
    paystack_secret_key="sk_test_paystack",
    rate_limit_window_seconds=15 * 60,
    rate_limit_block_seconds=60 * 60,
    rate_limit_cleanup_seconds=30 * 60,
    max_calls_per_ip=3,
)


def make_settings(**overrides) -> Settings:
    return replace(BASE_SETTINGS, **overrides)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def make_guard(clock):
    """Factory: isolated CallGuard on the fake clock."""

    def _make(settings: Settings | None = None, blacklist=()) -> CallGuard:
        settings = settings or make_settings()
        limiter = RateLimiter(
            RateLimitPolicy(
                window_seconds=settings.rate_limit_window_seconds,
                block_seconds=settings.rate_limit_block_seconds,
                cleanup_interval_seconds=settings.rate_limit_cleanup_seconds,
            ),
            clock=clock,
        )
        return CallGuard(
            settings,
            limiter=limiter,
            blacklist=Blacklist(blacklist),
            clock=clock,
            recaptcha_breaker=CircuitBreaker("recaptcha", clock=clock),
        )

    return _make


# ---------------------------------------------------------------------------
# Provider patches
# ---------------------------------------------------------------------------

VAPI_CALL = {"id": "call-test-001", "status": "queued", "type": "outboundPhoneCall"}


@pytest.fixture
def mock_vapi():
    """Patch the Vapi call creation used by the call route."""
    with patch("services.vapi.create_phone_call", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = dict(VAPI_CALL)
        yield mock_create

