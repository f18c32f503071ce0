"""Paystack transaction verification."""

from __future__ import annotations

from urllib.parse import quote

import httpx
from loguru import logger

from lib.errors import ProviderError

PAYSTACK_VERIFY_URL = "https://api.paystack.co/transaction/verify/{reference}"


async def verify_transaction(
    secret_key: str,
    reference: str,
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Fetch the transaction by reference. Returns Paystack's ``data`` object."""
    url = PAYSTACK_VERIFY_URL.format(reference=quote(reference, safe=""))
    headers = {
        "Authorization": f"Bearer {secret_key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        resp = await client.get(url, headers=headers)

    try:
        body = resp.json()
    except ValueError:
        body = {"message": resp.text}

    if resp.is_error:
        logger.error("Paystack verification error {status}: {body}", status=resp.status_code, body=body)
        raise ProviderError("paystack", resp.status_code, body, "Payment verification failed")

    return body.get("data") or {}


def summarize_transaction(data: dict) -> dict:
    """Shape a successful transaction for the client. Amount leaves minor units."""
    customer = data.get("customer") or {}
    amount = data.get("amount")
    return {
        "reference": data.get("reference"),
        "amount": amount / 100 if isinstance(amount, (int, float)) else None,
        "currency": data.get("currency"),
        "status": data.get("status"),
        "paid_at": data.get("paid_at"),
        "customer": {
            "email": customer.get("email"),
            "customer_code": customer.get("customer_code"),
        },
        "metadata": data.get("metadata"),
    }
