"""Exceptions raised by the call pipeline and provider clients.

Rendered into JSON responses by api/middleware/error_handler.py.
"""

from __future__ import annotations

from typing import Any

# One message for every security rejection, whichever check fired
SECURITY_MESSAGE = "Security verification failed. Please refresh and try again."
CONFIG_MESSAGE = "Server configuration error"


class CallRejected(Exception):
    """A request stopped by the pipeline. Carries its HTTP rendering."""

    status_code = 400

    def __init__(self, error: str, **extra: Any):
        super().__init__(error)
        self.error = error
        self.extra = extra

    def to_body(self) -> dict:
        return {"error": self.error, **self.extra}


class InvalidRequest(CallRejected):
    status_code = 400


class SecurityRejected(CallRejected):
    status_code = 403

    def __init__(self, reason: str):
        # reason is for logs only
        super().__init__(SECURITY_MESSAGE)
        self.reason = reason


class RateLimited(CallRejected):
    status_code = 429

    def __init__(self, error: str, retry_after: int):
        super().__init__(error, retryAfter=retry_after)
        self.retry_after = retry_after


class ConfigurationError(CallRejected):
    status_code = 500

    def __init__(self, missing: str):
        # never echo which secret is missing
        super().__init__(CONFIG_MESSAGE)
        self.missing = missing


class ProviderError(Exception):
    """Non-2xx response from an upstream provider."""

    def __init__(self, provider: str, status_code: int, payload: Any, default_message: str):
        self.provider = provider
        self.status_code = status_code
        self.payload = payload
        message = payload.get("message") if isinstance(payload, dict) else None
        self.error = message if isinstance(message, str) and message else default_message
        super().__init__(f"{provider} returned {status_code}: {self.error}")

    def to_body(self) -> dict:
        return {"error": self.error, "details": self.payload}
