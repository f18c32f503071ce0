"""Tests for services/recaptcha.py: siteverify through a mock transport."""

from urllib.parse import parse_qs

import httpx
import pytest

from lib.circuit_breaker import OPEN, CircuitBreaker
from services.recaptcha import NEUTRAL_SCORE, SITEVERIFY_URL, verify_token


def _transport(payload=None, status=200, raise_exc=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if raise_exc is not None:
            raise raise_exc
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("recaptcha-test", failure_threshold=3, recovery_timeout=60.0, clock=clock)


class TestVerifyToken:
    @pytest.mark.asyncio
    async def test_no_secret_is_degraded_allow(self, breaker):
        result = await verify_token("anything", secret="", breaker=breaker)
        assert result.success
        assert result.score == NEUTRAL_SCORE
        assert result.degraded

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, breaker):
        result = await verify_token(None, secret="s3cret", breaker=breaker)
        assert not result.success
        assert result.error == "Security verification required"

    @pytest.mark.asyncio
    async def test_good_score(self, breaker):
        seen = []
        result = await verify_token(
            "tok-123",
            secret="s3cret",
            breaker=breaker,
            transport=_transport({"success": True, "score": 0.9, "action": "submit"}, seen=seen),
        )
        assert result.success
        assert result.score == 0.9
        assert not result.degraded

        request = seen[0]
        assert str(request.url) == SITEVERIFY_URL
        form = parse_qs(request.content.decode())
        assert form == {"secret": ["s3cret"], "response": ["tok-123"]}

    @pytest.mark.asyncio
    async def test_low_score_rejected(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            min_score=0.6,
            transport=_transport({"success": True, "score": 0.3}),
        )
        assert not result.success
        assert result.score == 0.3
        assert result.error == "Suspicious activity detected"

    @pytest.mark.asyncio
    async def test_score_at_threshold_passes(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            min_score=0.6,
            transport=_transport({"success": True, "score": 0.6}),
        )
        assert result.success

    @pytest.mark.asyncio
    async def test_explicit_failure_rejected(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            transport=_transport({"success": False, "error-codes": ["invalid-input-response"]}),
        )
        assert not result.success
        assert result.error == "Security verification failed"

    @pytest.mark.asyncio
    async def test_unreachable_fails_open(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            transport=_transport(raise_exc=httpx.ConnectError("no route")),
        )
        assert result.success
        assert result.degraded
        assert result.score == NEUTRAL_SCORE

    @pytest.mark.asyncio
    async def test_unreachable_fails_closed_when_configured(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            fail_open=False,
            transport=_transport(raise_exc=httpx.ConnectError("no route")),
        )
        assert not result.success
        assert result.error == "Verification unavailable"

    @pytest.mark.asyncio
    async def test_server_error_treated_as_unreachable(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            transport=_transport({"oops": True}, status=503),
        )
        assert result.success
        assert result.degraded

    @pytest.mark.asyncio
    async def test_null_score_rejected(self, breaker):
        result = await verify_token(
            "tok",
            secret="s3cret",
            breaker=breaker,
            transport=_transport({"success": True, "score": None}),
        )
        assert not result.success
        assert result.score == 0.0
        assert result.error == "Suspicious activity detected"

    @pytest.mark.asyncio
    async def test_open_breaker_skips_siteverify(self, breaker):
        seen = []
        down = _transport(raise_exc=httpx.ConnectError("no route"), seen=seen)
        for _ in range(3):
            await verify_token("tok", secret="s3cret", breaker=breaker, transport=down)
        assert breaker.state == OPEN
        assert len(seen) == 3

        result = await verify_token("tok", secret="s3cret", breaker=breaker, transport=down)
        assert result.degraded
        assert len(seen) == 3
