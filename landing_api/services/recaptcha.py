"""reCAPTCHA v3 verification.

Google returns a score from 0.0 (bot) to 1.0 (human). When the verifier is
not configured, or configured but unreachable, requests are let through with
a neutral score: availability wins over strictness here. Set
RECAPTCHA_FAIL_OPEN=false to reject instead when siteverify is down.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from lib.circuit_breaker import CircuitBreaker

SITEVERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
NEUTRAL_SCORE = 0.5


@dataclass(frozen=True)
class RecaptchaResult:
    success: bool
    score: float | None = None
    error: str | None = None
    degraded: bool = False


async def _siteverify(
    secret: str,
    token: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
) -> dict:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.post(SITEVERIFY_URL, data={"secret": secret, "response": token})
        resp.raise_for_status()
        return resp.json()


async def verify_token(
    token: str | None,
    *,
    secret: str,
    breaker: CircuitBreaker,
    min_score: float = 0.6,
    fail_open: bool = True,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RecaptchaResult:
    """Verify a client token and apply the score threshold.

    Siteverify goes through ``breaker``, owned by the caller (see CallGuard).
    """
    if not secret:
        logger.warning("RECAPTCHA_SECRET_KEY not configured, allowing with neutral score")
        return RecaptchaResult(success=True, score=NEUTRAL_SCORE, degraded=True)

    if not token:
        logger.warning("No reCAPTCHA token provided")
        return RecaptchaResult(success=False, error="Security verification required")

    # None means siteverify failed or the breaker is open
    data = await breaker.call(
        lambda: _siteverify(secret, token, timeout, transport),
        fallback=lambda: None,
    )

    if data is None:
        if fail_open:
            logger.warning("reCAPTCHA unavailable, allowing with neutral score")
            return RecaptchaResult(success=True, score=NEUTRAL_SCORE, degraded=True)
        return RecaptchaResult(success=False, error="Verification unavailable")

    if not data.get("success"):
        logger.warning("reCAPTCHA rejected token: {codes}", codes=data.get("error-codes"))
        return RecaptchaResult(success=False, error="Security verification failed")

    score = float(data.get("score") or 0.0)
    if score < min_score:
        logger.warning(
            "Low reCAPTCHA score {score} for action {action}",
            score=score,
            action=data.get("action"),
        )
        return RecaptchaResult(success=False, score=score, error="Suspicious activity detected")

    return RecaptchaResult(success=True, score=score)
