"""Centralized configuration: all environment variables in one place.

Import `settings` from this module instead of calling os.getenv() directly.
Route handlers take `Depends(get_settings)` so tests can override it.

Usage:
    from config import settings
    print(settings.vapi_assistant_id)
    print(settings.max_calls_per_phone)
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """All environment variables used by the landing page API."""

    # ---- Server ----
    port: int = 8000
    log_level: str = "INFO"
    debug: bool = False
    allowed_origins: tuple[str, ...] = ()

    # ---- Vapi (voice calls) ----
    vapi_private_key: str = ""
    vapi_assistant_id: str = ""
    vapi_phone_number_id: str = ""
    max_call_duration_seconds: int = 180

    # ---- reCAPTCHA ----
    recaptcha_secret_key: str = ""
    recaptcha_min_score: float = 0.6
    recaptcha_fail_open: bool = True

    # ---- Paystack ----
    paystack_secret_key: str = ""

    # ---- Abuse protection ----
    min_form_fill_seconds: float = 3.0
    rate_limit_window_seconds: float = 15 * 60
    rate_limit_block_seconds: float = 60 * 60
    rate_limit_cleanup_seconds: float = 30 * 60
    max_calls_per_ip: int = 3
    max_calls_per_phone: int = 3
    blacklist_threshold: int = 5
    blacklisted_numbers: frozenset[str] = field(default_factory=frozenset)

    # ---- Outbound HTTP ----
    http_timeout_seconds: float = 10.0


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _check_escalation(s: Settings) -> None:
    # A blocked number stops counting at 2 * max_calls_per_phone + 1
    if s.blacklist_threshold > 2 * s.max_calls_per_phone:
        raise ValueError(
            f"BLACKLIST_THRESHOLD={s.blacklist_threshold} is never exceeded with "
            f"MAX_CALLS_PER_PHONE={s.max_calls_per_phone}; "
            f"use at most {2 * s.max_calls_per_phone}"
        )


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment. Cached after first call."""

    def _env(key: str, default: str = "") -> str:
        return os.environ.get(key, default)

    def _flag(key: str, default: str = "false") -> bool:
        return _env(key, default).lower() in ("1", "true", "yes")

    loaded = Settings(
        # Server
        port=int(_env("PORT", "8000")),
        log_level=_env("LOG_LEVEL", "INFO"),
        debug=_flag("DEBUG"),
        allowed_origins=tuple(_split(_env("ALLOWED_ORIGINS"))),
        # Vapi
        vapi_private_key=_env("VAPI_PRIVATE_KEY"),
        vapi_assistant_id=_env("VAPI_ASSISTANT_ID") or _env("VITE_VAPI_ASSISTANT_ID"),
        vapi_phone_number_id=_env("VAPI_PHONE_NUMBER_ID"),
        max_call_duration_seconds=int(_env("MAX_CALL_DURATION_SECONDS", "180")),
        # reCAPTCHA
        recaptcha_secret_key=_env("RECAPTCHA_SECRET_KEY"),
        recaptcha_min_score=float(_env("RECAPTCHA_MIN_SCORE", "0.6")),
        recaptcha_fail_open=_flag("RECAPTCHA_FAIL_OPEN", "true"),
        # Paystack
        paystack_secret_key=_env("PAYSTACK_SECRET_KEY"),
        # Abuse protection
        min_form_fill_seconds=float(_env("MIN_FORM_FILL_SECONDS", "3")),
        rate_limit_window_seconds=float(_env("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60))),
        rate_limit_block_seconds=float(_env("RATE_LIMIT_BLOCK_SECONDS", str(60 * 60))),
        rate_limit_cleanup_seconds=float(_env("RATE_LIMIT_CLEANUP_SECONDS", str(30 * 60))),
        max_calls_per_ip=int(_env("MAX_CALLS_PER_IP", "3")),
        max_calls_per_phone=int(_env("MAX_CALLS_PER_PHONE", "3")),
        blacklist_threshold=int(_env("BLACKLIST_THRESHOLD", "5")),
        blacklisted_numbers=frozenset(_split(_env("BLACKLISTED_NUMBERS"))),
        # Outbound HTTP
        http_timeout_seconds=float(_env("HTTP_TIMEOUT_SECONDS", "10")),
    )
    _check_escalation(loaded)
    return loaded


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return _load_settings()


# Module-level accessor: import this
settings = _load_settings()
