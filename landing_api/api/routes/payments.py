"""Payment verification route.

The checkout modal hands us a Paystack reference once the customer pays; we
confirm it server-side before unlocking anything.
"""

# slowapi wraps the endpoint: annotations must stay real objects, not strings
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from api.middleware.error_handler import internal_error_response
from api.middleware.rate_limit import PAYMENT_LIMIT, limiter
from api.validators.schemas import VerifyPaymentRequest
from config import Settings, get_settings
from lib.errors import ConfigurationError, InvalidRequest, ProviderError
from services import paystack

router = APIRouter()


@router.post("/api/verify-payment")
@limiter.limit(PAYMENT_LIMIT)
async def verify_payment(
    request: Request,
    body: VerifyPaymentRequest,
    settings: Settings = Depends(get_settings),
):
    if not body.reference:
        raise InvalidRequest("Payment reference is required")
    if not settings.paystack_secret_key:
        raise ConfigurationError("PAYSTACK_SECRET_KEY")

    try:
        data = await paystack.verify_transaction(
            settings.paystack_secret_key,
            body.reference,
            timeout=settings.http_timeout_seconds,
        )
    except ProviderError:
        raise
    except Exception as e:
        logger.exception("Error verifying payment: {err}", err=str(e))
        return internal_error_response(e, settings.debug, "Failed to verify payment")

    status = data.get("status")
    if status != "success":
        logger.info("Payment {ref} not successful: {status}", ref=body.reference, status=status)
        return JSONResponse(
            status_code=400,
            content={"error": "Payment was not successful", "status": status},
        )

    logger.info("Payment {ref} verified", ref=body.reference)
    return {
        "success": True,
        "message": "Payment verified successfully",
        "data": paystack.summarize_transaction(data),
    }
