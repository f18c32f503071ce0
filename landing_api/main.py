"""Landing page API: FastAPI server entry point.

Serves:
- /health: health check
- /api/initiate-call: demo call request from the landing page form
- /api/verify-payment: Paystack reference verification
"""

from __future__ import annotations

import asyncio
import sys
import warnings

from loguru import logger

from config import settings

logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# Route Python warnings through loguru instead of raw stderr.
# DeprecationWarnings → DEBUG, other warnings → WARNING.
def _warning_handler(message, category, filename, lineno, file=None, line=None):
    if issubclass(category, DeprecationWarning):
        logger.debug("{msg}", msg=str(message))
    else:
        logger.warning("{cat}: {msg}", cat=category.__name__, msg=str(message))

warnings.showwarning = _warning_handler

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from api.middleware.error_handler import register_error_handlers
from api.middleware.rate_limit import limiter
from api.routes.calls import router as calls_router
from api.routes.payments import router as payments_router
from services.call_guard import CallGuard

app = FastAPI(title="Voice Demo Landing API", version="0.1.0")

# One guard per process: owns the call rate limiter and blacklist
app.state.call_guard = CallGuard(settings)

_cleanup_task: asyncio.Task | None = None

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

ALLOWED_ORIGINS = list(settings.allowed_origins)
if settings.debug:
    ALLOWED_ORIGINS.extend(["http://localhost:5173", "http://localhost:3000"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Error handlers
register_error_handlers(app)

# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
app.include_router(calls_router)
app.include_router(payments_router)


@app.get("/health")
async def health():
    """Health check with limiter and breaker status."""
    from lib.circuit_breaker import get_breaker_states

    guard: CallGuard = app.state.call_guard
    return {
        "status": "ok",
        "service": "voice-demo-landing-api",
        "rate_limit_entries": len(guard.limiter.store),
        "blacklisted_numbers": len(guard.blacklist),
        "circuit_breakers": get_breaker_states(),
    }


# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@app.on_event("startup")
async def startup():
    global _cleanup_task
    logger.info("Landing API starting on port {port}", port=settings.port)

    guard: CallGuard = app.state.call_guard
    _cleanup_task = asyncio.create_task(guard.limiter.run_cleanup())
    logger.info(
        "Rate limit cleanup every {secs}s",
        secs=int(guard.limiter.policy.cleanup_interval_seconds),
    )


@app.on_event("shutdown")
async def shutdown():
    global _cleanup_task
    if _cleanup_task is not None:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass
        _cleanup_task = None
    logger.info("Landing API stopped")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
