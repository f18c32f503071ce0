"""Demo call API route.

The landing page form posts here; after the abuse pipeline passes, Vapi
phones the visitor with the demo assistant.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from loguru import logger

from api.middleware.error_handler import internal_error_response
from api.validators.schemas import InitiateCallRequest
from config import Settings, get_settings
from lib.errors import CallRejected, ConfigurationError, ProviderError
from services import vapi
from services.call_guard import CallGuard, get_call_guard, get_client_ip

router = APIRouter()

SUCCESS_MESSAGE = "Call initiated successfully"


def _require_vapi_config(settings: Settings) -> None:
    if not settings.vapi_private_key:
        raise ConfigurationError("VAPI_PRIVATE_KEY")
    if not settings.vapi_assistant_id:
        raise ConfigurationError("VAPI_ASSISTANT_ID")
    if not settings.vapi_phone_number_id:
        raise ConfigurationError("VAPI_PHONE_NUMBER_ID")


@router.post("/api/initiate-call")
async def initiate_call(
    body: InitiateCallRequest,
    request: Request,
    response: Response,
    guard: CallGuard = Depends(get_call_guard),
    settings: Settings = Depends(get_settings),
):
    """Screen the request, then ask Vapi to call the visitor."""
    try:
        result = await guard.screen(body, get_client_ip(request))
        if result.honeypot:
            # Look like a success so bots learn nothing
            return {"success": True, "message": SUCCESS_MESSAGE}

        _require_vapi_config(settings)

        metadata = vapi.build_call_metadata(
            first_name=body.first_name,
            last_name=body.last_name,
            email=body.email,
            message=body.message,
        )
        payload = vapi.build_call_payload(
            assistant_id=settings.vapi_assistant_id,
            phone_number_id=settings.vapi_phone_number_id,
            customer_number=result.phone,
            metadata=metadata,
            max_duration_seconds=settings.max_call_duration_seconds,
        )
        call = await vapi.create_phone_call(
            settings.vapi_private_key,
            payload,
            timeout=settings.http_timeout_seconds,
        )

    except (CallRejected, ProviderError):
        raise
    except Exception as e:
        logger.exception("Error initiating call: {err}", err=str(e))
        return internal_error_response(e, settings.debug, "Failed to initiate call")

    remaining = guard.remaining_for_phone(result.phone)
    if remaining is not None:
        response.headers["X-RateLimit-Remaining"] = str(remaining)

    return {
        "success": True,
        "message": SUCCESS_MESSAGE,
        "callId": call.get("id"),
        "data": call,
    }
