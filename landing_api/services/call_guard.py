"""Anti-abuse pipeline for demo call requests.

Checks run in a fixed order and stop at the first rejection:

1. honeypot: hidden field filled → pretend success, do nothing
2. reCAPTCHA: explicit failure or low score → 403
3. form timing: submitted faster than a human could type → 403
4. interaction: client reports no clicks/keys before submit → 403
5. phone format: missing → 400, malformed → 400
6. blacklist: 403
7. rate limits: per IP, then per phone → 429; heavy phone abusers
   are blacklisted on the way out

Nothing mutates limiter or blacklist state before step 7, so a honeypot hit
or a malformed number can never blacklist anyone.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from fastapi import Request
from loguru import logger

from api.validators.schemas import InitiateCallRequest
from config import Settings
from lib.circuit_breaker import CircuitBreaker
from lib.errors import InvalidRequest, RateLimited, SecurityRejected
from lib.phone import mask_phone, validate_phone_number
from lib.rate_limiter import Blacklist, Clock, RateLimiter, RateLimitPolicy
from services import recaptcha

IP_LIMIT_MESSAGE = "Too many call requests from your location. Please try again later."
PHONE_LIMIT_MESSAGE = "Too many call requests for this number. Please try again later."


@dataclass(frozen=True)
class ScreenResult:
    """Outcome of a request that was not rejected."""
    honeypot: bool = False
    phone: str = ""
    score: float | None = None


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class CallGuard:
    """Owns the per-process abuse state; screens each call request."""

    def __init__(
        self,
        settings: Settings,
        limiter: RateLimiter | None = None,
        blacklist: Blacklist | None = None,
        clock: Clock | None = None,
        recaptcha_breaker: CircuitBreaker | None = None,
    ):
        self.settings = settings
        self.limiter = limiter or RateLimiter(
            RateLimitPolicy(
                window_seconds=settings.rate_limit_window_seconds,
                block_seconds=settings.rate_limit_block_seconds,
                cleanup_interval_seconds=settings.rate_limit_cleanup_seconds,
            ),
            clock=clock or time.time,
        )
        self.blacklist = blacklist if blacklist is not None else Blacklist(settings.blacklisted_numbers)
        self.clock = clock or self.limiter.clock
        self.recaptcha_breaker = recaptcha_breaker or CircuitBreaker(
            "recaptcha", failure_threshold=3, recovery_timeout=60.0
        )

    async def screen(self, body: InitiateCallRequest, client_ip: str) -> ScreenResult:
        """Run every check. Raises a CallRejected subclass on rejection."""
        if body.honeypot:
            logger.warning("Bot detected via honeypot from {ip}", ip=client_ip)
            return ScreenResult(honeypot=True)

        score = await self._check_recaptcha(body.recaptcha_token)
        self._check_timing(body.form_start_time)
        self._check_interaction(body.user_interacted)
        phone = self._check_phone(body.phone_number)

        if phone in self.blacklist:
            logger.warning("Blacklisted number {phone} rejected", phone=mask_phone(phone))
            raise SecurityRejected("blacklisted")

        self._check_rate_limits(client_ip, phone)
        return ScreenResult(phone=phone, score=score)

    async def _check_recaptcha(self, token: str | None) -> float | None:
        s = self.settings
        result = await recaptcha.verify_token(
            token,
            secret=s.recaptcha_secret_key,
            breaker=self.recaptcha_breaker,
            min_score=s.recaptcha_min_score,
            fail_open=s.recaptcha_fail_open,
            timeout=s.http_timeout_seconds,
        )
        if not result.success:
            logger.warning("reCAPTCHA verification failed: {err}", err=result.error)
            raise SecurityRejected(result.error or "recaptcha")
        logger.debug("reCAPTCHA score: {score}", score=result.score)
        return result.score

    def _check_timing(self, form_start_time: float | None) -> None:
        if not form_start_time:
            return
        fill_ms = self.clock() * 1000 - form_start_time
        if fill_ms < self.settings.min_form_fill_seconds * 1000:
            logger.warning("Form submitted too fast: {ms}ms", ms=int(fill_ms))
            raise SecurityRejected("form_too_fast")

    def _check_interaction(self, user_interacted: bool | None) -> None:
        # Only an explicit False counts; older clients omit the field
        if user_interacted is False:
            logger.warning("No user interaction detected before submit")
            raise SecurityRejected("no_interaction")

    def _check_phone(self, phone_number: str | None) -> str:
        if not phone_number:
            raise InvalidRequest("Phone number is required")
        validation = validate_phone_number(phone_number)
        if not validation.valid:
            raise InvalidRequest(validation.error)
        return validation.number

    def _check_rate_limits(self, client_ip: str, phone: str) -> None:
        s = self.settings

        ip_check = self.limiter.check(f"ip:{client_ip}", s.max_calls_per_ip)
        if not ip_check.allowed:
            logger.warning("Rate limit for IP {ip}: {reason}", ip=client_ip, reason=ip_check.reason)
            raise RateLimited(IP_LIMIT_MESSAGE, ip_check.retry_after or 0)

        phone_check = self.limiter.check(f"phone:{phone}", s.max_calls_per_phone)
        if not phone_check.allowed:
            if phone_check.count > s.blacklist_threshold and phone not in self.blacklist:
                self.blacklist.add(phone)
            logger.warning(
                "Rate limit for phone {phone}: {reason}",
                phone=mask_phone(phone),
                reason=phone_check.reason,
            )
            raise RateLimited(PHONE_LIMIT_MESSAGE, phone_check.retry_after or 0)

    def remaining_for_phone(self, phone: str) -> int | None:
        info = self.limiter.get_info(f"phone:{phone}", self.settings.max_calls_per_phone)
        return info["remaining"] if info else None


def get_call_guard(request: Request) -> CallGuard:
    """FastAPI dependency: the guard built at app startup (see main.py)."""
    return request.app.state.call_guard
