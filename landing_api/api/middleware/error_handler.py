"""Centralized error handler.

Every error leaves as JSON with an ``error`` key. Security and configuration
failures carry generic messages; the real cause is only logged.
"""

from __future__ import annotations

import json
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from lib.errors import CallRejected, ConfigurationError, ProviderError, RateLimited, SecurityRejected

_FALLBACK_BODY = json.dumps({
    "error": "Internal server error",
    "message": "An unexpected error occurred",
})


def internal_error_response(exc: Exception, debug: bool = False, message: str | None = None) -> Response:
    """500 for an unexpected exception. Plain text if even JSON rendering fails."""
    content = {
        "error": "Internal server error",
        "message": (str(exc) if debug else None) or message or "An unexpected error occurred",
    }
    if debug:
        content["details"] = "".join(traceback.format_exception(exc))
    try:
        return JSONResponse(status_code=500, content=content)
    except Exception:
        return PlainTextResponse(_FALLBACK_BODY, status_code=500, media_type="application/json")


def call_rejected_response(exc: CallRejected) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(CallRejected)
    async def call_rejected_handler(request: Request, exc: CallRejected) -> JSONResponse:
        if isinstance(exc, SecurityRejected):
            logger.info("Security rejection on {path}: {reason}", path=request.url.path, reason=exc.reason)
        elif isinstance(exc, ConfigurationError):
            logger.error("{name} not configured", name=exc.missing)
        return call_rejected_response(exc)

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        if exc.status_code == 405:
            detail = "Method not allowed"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"error": f"{field}: {message}" if field else message},
        )

    @app.exception_handler(Exception)
    async def global_error_handler(request: Request, exc: Exception) -> Response:
        request_id = request.headers.get("x-request-id", "no-id")
        logger.error("[{rid}] Unhandled error: {err}", rid=request_id, err=str(exc))
        return internal_error_response(exc, settings.debug)
