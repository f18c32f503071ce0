"""Vapi outbound phone calls.

POST /call/phone with the demo assistant, our Vapi phone number resource and
the visitor's number. Form fields ride along as call metadata.
"""

from __future__ import annotations

import httpx
from loguru import logger

from lib.errors import ProviderError
from lib.phone import mask_phone

VAPI_CALL_URL = "https://api.vapi.ai/call/phone"


def build_call_metadata(
    first_name: str | None = None,
    last_name: str | None = None,
    email: str | None = None,
    message: str | None = None,
) -> dict[str, str]:
    return {
        "firstName": first_name or "Guest",
        "lastName": last_name or "",
        "email": email or "",
        "message": message or "",
    }


def build_call_payload(
    assistant_id: str,
    phone_number_id: str,
    customer_number: str,
    metadata: dict,
    max_duration_seconds: int = 180,
) -> dict:
    return {
        "assistantId": assistant_id,
        "phoneNumberId": phone_number_id,
        "customer": {"number": customer_number},
        "metadata": metadata,
        "maxDurationSeconds": max_duration_seconds,
    }


def _json_or_text(resp: httpx.Response) -> dict:
    try:
        return resp.json()
    except ValueError:
        return {"message": resp.text}


async def create_phone_call(
    private_key: str,
    payload: dict,
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Create the call. Returns Vapi's call object; raises ProviderError on non-2xx."""
    headers = {
        "Authorization": f"Bearer {private_key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.post(VAPI_CALL_URL, json=payload, headers=headers)

    data = _json_or_text(resp)
    if resp.is_error:
        logger.error("Vapi API error {status}: {data}", status=resp.status_code, data=data)
        raise ProviderError("vapi", resp.status_code, data, "Failed to initiate call")

    logger.info(
        "Vapi call {cid} created for {phone}",
        cid=data.get("id"),
        phone=mask_phone(payload.get("customer", {}).get("number")),
    )
    return data
